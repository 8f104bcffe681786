import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .customer_reference import ContactReference, CustomerReference


class CaseState(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class CaseDB(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    description: Optional[str] = None

    # Optional so that a candidate lacking a customer can reach the guard
    customer: Optional[CustomerReference] = None
    # Derived from the organization's designated contact when the customer is an organization
    primary_contact: Optional[ContactReference] = None

    state: CaseState = Field(default=CaseState.OPEN)
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))

    @property
    def is_open(self) -> bool:
        return self.state == CaseState.OPEN
