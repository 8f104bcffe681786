# Command Models (Pydantic)
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from customer_case_service.app.models import CaseState, ContactReference, CustomerReference


class BaseCommand(BaseModel):
    command_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class CreateCaseCommand(BaseCommand):
    title: str
    description: Optional[str] = None
    # Optional here so the guard, not request validation, reports a missing customer
    customer: Optional[CustomerReference] = None
    primary_contact: Optional[ContactReference] = None


class ChangeCaseCustomerCommand(BaseCommand):
    case_id: str
    customer: CustomerReference


class ChangeCaseStateCommand(BaseCommand):
    case_id: str
    new_state: CaseState
