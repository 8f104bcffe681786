from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomerKind(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    INDIVIDUAL = "INDIVIDUAL"


class CustomerReference(BaseModel):
    """Reference from a case to the customer it was raised for."""
    model_config = ConfigDict(use_enum_values=True)

    kind: CustomerKind
    id: str = Field(min_length=1)
    name: Optional[str] = None # Display name, informational only

    def refers_to(self, other: Optional["CustomerReference"]) -> bool:
        """Same customer, ignoring the informational display name."""
        return other is not None and self.kind == other.kind and self.id == other.id


class ContactReference(BaseModel):
    """Reference to the individual acting as primary contact of a case."""
    id: str = Field(min_length=1)
    entity_type: str = CustomerKind.INDIVIDUAL.value
    name: Optional[str] = None
