from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from customer_case_service.app.models import ContactReference, CustomerReference

PRIMARY_CONTACT_FIELD = "primary_contact"


class RequiredLevel(str, Enum):
    NONE = "none"
    RECOMMENDED = "recommended"
    REQUIRED = "required"


class CaseFieldAccess(ABC):
    """
    Handle onto one case's customer related fields, as seen by one session.

    Value reads and the contact write are async because implementations may be
    backed by the record store. Requirement, visibility and notifications are
    form directives and stay synchronous.
    """

    @property
    @abstractmethod
    def case_key(self) -> str:
        """Identifies the case instance generations are tracked against."""
        pass

    @abstractmethod
    async def get_customer(self) -> Optional[CustomerReference]:
        pass

    @abstractmethod
    async def get_primary_contact(self) -> Optional[ContactReference]:
        pass

    @abstractmethod
    async def set_primary_contact_if_unset(
        self,
        contact: ContactReference,
        expected_customer: CustomerReference
    ) -> bool:
        """Writes contact only if still unset and the customer is still expected_customer."""
        pass

    @abstractmethod
    def set_required_level(self, field: str, level: RequiredLevel) -> None:
        pass

    @abstractmethod
    def set_visible(self, field: str, visible: bool) -> None:
        pass

    @abstractmethod
    def notify_user(self, message: str) -> None:
        pass


class PreviewForm(ABC):
    """Read-only quick view of a related record embedded in the case form."""

    @abstractmethod
    def is_loaded(self) -> bool:
        pass

    @abstractmethod
    def get_value(self, field: str) -> Any:
        pass

    @abstractmethod
    def set_visible(self, field: str, visible: bool) -> None:
        pass

    @abstractmethod
    def notify_user(self, message: str) -> None:
        pass


class FormDirectives:
    """Collects the directives a resolution issues for the host UI."""

    def __init__(self):
        self.required_levels: Dict[str, RequiredLevel] = {}
        self.visibility: Dict[str, bool] = {}
        self.messages: List[str] = []

    def set_required_level(self, field: str, level: RequiredLevel) -> None:
        self.required_levels[field] = RequiredLevel(level)

    def set_visible(self, field: str, visible: bool) -> None:
        self.visibility[field] = bool(visible)

    def notify_user(self, message: str) -> None:
        self.messages.append(message)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "required_levels": {field: level.value for field, level in self.required_levels.items()},
            "visibility": dict(self.visibility),
            "messages": list(self.messages),
        }


class CaseForm(CaseFieldAccess):
    """In-memory case form state for a single editing session."""

    def __init__(
        self,
        case_key: str,
        customer: Optional[CustomerReference] = None,
        primary_contact: Optional[ContactReference] = None
    ):
        self._case_key = case_key
        self.customer = customer
        self.primary_contact = primary_contact
        self.directives = FormDirectives()

    @property
    def case_key(self) -> str:
        return self._case_key

    async def get_customer(self) -> Optional[CustomerReference]:
        return self.customer

    async def get_primary_contact(self) -> Optional[ContactReference]:
        return self.primary_contact

    async def set_primary_contact_if_unset(
        self,
        contact: ContactReference,
        expected_customer: CustomerReference
    ) -> bool:
        if self.primary_contact is not None or not expected_customer.refers_to(self.customer):
            return False
        self.primary_contact = contact
        return True

    def set_required_level(self, field: str, level: RequiredLevel) -> None:
        self.directives.set_required_level(field, level)

    def set_visible(self, field: str, visible: bool) -> None:
        self.directives.set_visible(field, visible)

    def notify_user(self, message: str) -> None:
        self.directives.notify_user(message)


class RecordPreviewForm(PreviewForm):
    """Quick view over an already loaded record's values."""

    def __init__(self, values: Optional[Mapping[str, Any]], loaded: bool = True):
        self.values = dict(values or {})
        self.loaded = loaded
        self.visibility: Dict[str, bool] = {}
        self.messages: List[str] = []

    def is_loaded(self) -> bool:
        return self.loaded

    def get_value(self, field: str) -> Any:
        return self.values.get(field)

    def set_visible(self, field: str, visible: bool) -> None:
        self.visibility[field] = bool(visible)

    def notify_user(self, message: str) -> None:
        self.messages.append(message)
