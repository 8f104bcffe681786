import datetime
from typing import Optional

from pydantic import BaseModel, Field


class IndividualDB(BaseModel):
    id: str
    display_name: str
    email: Optional[str] = None
    mobile_phone: Optional[str] = None

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
