from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .recurrences import RepeatRule


class TransactionCreate(BaseModel):
    # Loose on purpose: the store validates and names the offending field
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Any = None
    category: Any = None
    amount: Any = None
    note: Optional[str] = None
    date: Any = None
    is_recurring: Any = None
    repeat_rule: Any = None
    notify: Any = None
    next_trigger_at: Any = None


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    amount: Any = None
    category: Any = None
    note: Optional[str] = None


class Transaction(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    user_id: str = Field(alias="userId")
    type: Literal["income", "expense"]
    category: str
    amount: float
    note: Optional[str] = None
    date: datetime
    is_recurring: bool = False
    repeat_rule: Optional[RepeatRule] = None
    notify: bool = False
    next_trigger_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        # Absent anchors stay absent on the wire
        payload["repeatRule"] = self.repeat_rule.to_payload() if self.repeat_rule else None
        return payload
