from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Frequency = Literal["daily", "weekly", "monthly"]


class RepeatRule(BaseModel):
    """Immutable recurrence rule; replaced wholesale on edit."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    freq: Frequency
    day_of_month: Optional[int] = None   # 1..31, monthly only
    weekday: Optional[int] = None        # 0 = Sunday .. 6, weekly only

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RecurringCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Any = None
    category: Any = None
    amount: Any = None
    note: Optional[str] = None
    date: Any = None
    repeat_rule: Any = None
    notify: Any = None


class RecurringUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    amount: Any = None
    category: Any = None
    note: Optional[str] = None
    notify: Any = None
    type: Any = None
    date: Any = None
    repeat_rule: Any = None
    recalculate_next_trigger: Any = None
