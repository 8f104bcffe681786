import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OrganizationDB(BaseModel):
    id: str
    name: str
    designated_contact_id: Optional[str] = None # Individual on record as point of contact

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))


class OrganizationContact(BaseModel):
    """Organization joined with its designated contact's display name."""
    id: str
    designated_contact_id: Optional[str] = None
    designated_contact_name: Optional[str] = None
