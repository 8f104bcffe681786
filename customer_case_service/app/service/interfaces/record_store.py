from abc import ABC, abstractmethod
from typing import List, Optional

from customer_case_service.app.models import (
    CaseDB,
    CaseState,
    ContactReference,
    CustomerReference,
    IndividualDB,
    OrganizationContact,
    OrganizationDB,
)


class AbstractRecordStore(ABC):
    """Repository of cases, organizations and individuals."""

    # True when insert_case_if_no_open_case is enforced by the store itself.
    supports_conditional_insert: bool = False

    @abstractmethod
    async def find_open_cases(self, customer_id: str, limit: int = 1) -> List[CaseDB]:
        """
        Returns open cases referencing the given customer.

        Args:
            customer_id: ID of the organization or individual acting as customer.
            limit: Maximum number of matches to return. Existence checks pass 1.
        """
        pass

    @abstractmethod
    async def get_case(self, case_id: str) -> Optional[CaseDB]:
        pass

    @abstractmethod
    async def list_cases(
        self,
        customer_id: Optional[str] = None,
        state: Optional[CaseState] = None,
        limit: int = 10,
        skip: int = 0
    ) -> List[CaseDB]:
        pass

    @abstractmethod
    async def insert_case(self, case: CaseDB) -> CaseDB:
        """Persists a case without any uniqueness check."""
        pass

    @abstractmethod
    async def insert_case_if_no_open_case(self, case: CaseDB) -> CaseDB:
        """
        Persists an open case only if its customer has no other open case.

        Raises ActiveCaseExistsError on conflict. Stores that cannot evaluate the
        predicate atomically leave supports_conditional_insert unset and raise
        NotImplementedError here.
        """
        pass

    @abstractmethod
    async def update_case_customer(self, case_id: str, customer: CustomerReference) -> Optional[CaseDB]:
        pass

    @abstractmethod
    async def update_case_state(self, case_id: str, state: CaseState) -> Optional[CaseDB]:
        pass

    @abstractmethod
    async def set_primary_contact_if_unset(
        self,
        case_id: str,
        contact: ContactReference,
        expected_customer_id: str
    ) -> bool:
        """
        Writes the primary contact only while it is unset and the case still
        references expected_customer_id. Returns True if the write landed.
        """
        pass

    @abstractmethod
    async def get_organization_contact(self, organization_id: str) -> OrganizationContact:
        """
        Returns the organization's designated contact ID and that individual's
        display name in one round trip. Raises RecordNotFoundError if absent.
        """
        pass

    @abstractmethod
    async def get_organization(self, organization_id: str) -> Optional[OrganizationDB]:
        pass

    @abstractmethod
    async def upsert_organization(self, organization: OrganizationDB) -> OrganizationDB:
        pass

    @abstractmethod
    async def get_individual(self, individual_id: str) -> Optional[IndividualDB]:
        pass

    @abstractmethod
    async def upsert_individual(self, individual: IndividualDB) -> IndividualDB:
        pass
