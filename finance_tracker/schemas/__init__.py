from .recurrences import (
    Frequency,
    RepeatRule,
    RecurringCreate,
    RecurringUpdate,
)

from .transactions import (
    TransactionCreate,
    TransactionUpdate,
    Transaction,
)

from .limits import (
    CategoryLimitUpsert,
    CategoryLimit,
)
