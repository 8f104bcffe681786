import asyncio
import datetime
from typing import Dict, List, Optional

import pytest

from customer_case_service.app.models import (
    CaseDB,
    CaseState,
    ContactReference,
    CustomerKind,
    CustomerReference,
    IndividualDB,
    OrganizationContact,
    OrganizationDB,
)
from customer_case_service.app.service.exceptions import ActiveCaseExistsError, RecordNotFoundError
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore


class InMemoryRecordStore(AbstractRecordStore):
    """
    Dict backed record store for tests.

    query_delay suspends between reading and returning open cases so that
    concurrent creation attempts interleave. lookup_gates holds organization
    lookups until the matching event is set.
    """

    def __init__(self, conditional_insert: bool = True, query_delay: float = 0.0):
        self.supports_conditional_insert = conditional_insert
        self.query_delay = query_delay
        self.cases: Dict[str, CaseDB] = {}
        self.organizations: Dict[str, OrganizationDB] = {}
        self.individuals: Dict[str, IndividualDB] = {}
        self.lookup_gates: Dict[str, asyncio.Event] = {}
        self.lookup_errors: Dict[str, Exception] = {}
        self.lookup_calls: List[str] = []

    def _open_cases(self, customer_id: str) -> List[CaseDB]:
        return [
            case for case in self.cases.values()
            if case.customer is not None and case.customer.id == customer_id and case.is_open
        ]

    async def find_open_cases(self, customer_id: str, limit: int = 1) -> List[CaseDB]:
        matches = self._open_cases(customer_id)[:limit]
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        return [case.model_copy() for case in matches]

    async def get_case(self, case_id: str) -> Optional[CaseDB]:
        case = self.cases.get(case_id)
        return case.model_copy() if case else None

    async def list_cases(self, customer_id=None, state=None, limit=10, skip=0) -> List[CaseDB]:
        cases = [
            case for case in self.cases.values()
            if (customer_id is None or (case.customer and case.customer.id == customer_id))
            and (state is None or case.state == state)
        ]
        return cases[skip:skip + limit]

    async def insert_case(self, case: CaseDB) -> CaseDB:
        self.cases[case.id] = case.model_copy()
        return case

    async def insert_case_if_no_open_case(self, case: CaseDB) -> CaseDB:
        if not self.supports_conditional_insert:
            raise NotImplementedError(f"{type(self).__name__} does not support conditional inserts.")
        if case.customer is not None and case.is_open and self._open_cases(case.customer.id):
            raise ActiveCaseExistsError(customer_id=case.customer.id)
        return await self.insert_case(case)

    async def update_case_customer(self, case_id: str, customer: CustomerReference) -> Optional[CaseDB]:
        case = self.cases.get(case_id)
        if case is None:
            return None
        if self.supports_conditional_insert and case.is_open:
            if any(other.id != case_id for other in self._open_cases(customer.id)):
                raise ActiveCaseExistsError(customer_id=customer.id)
        case.customer = customer
        case.updated_at = datetime.datetime.now(datetime.UTC)
        return case.model_copy()

    async def update_case_state(self, case_id: str, state: CaseState) -> Optional[CaseDB]:
        case = self.cases.get(case_id)
        if case is None:
            return None
        if self.supports_conditional_insert and state == CaseState.OPEN and case.customer is not None:
            if any(other.id != case_id for other in self._open_cases(case.customer.id)):
                raise ActiveCaseExistsError(customer_id=case.customer.id)
        case.state = CaseState(state).value
        return case.model_copy()

    async def set_primary_contact_if_unset(self, case_id, contact, expected_customer_id) -> bool:
        case = self.cases.get(case_id)
        if case is None or case.primary_contact is not None:
            return False
        if case.customer is None or case.customer.id != expected_customer_id:
            return False
        case.primary_contact = contact
        return True

    async def get_organization_contact(self, organization_id: str) -> OrganizationContact:
        self.lookup_calls.append(organization_id)
        gate = self.lookup_gates.get(organization_id)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if organization_id in self.lookup_errors:
            raise self.lookup_errors[organization_id]
        organization = self.organizations.get(organization_id)
        if organization is None:
            raise RecordNotFoundError("organization", organization_id)
        contact = self.individuals.get(organization.designated_contact_id or "")
        return OrganizationContact(
            id=organization.id,
            designated_contact_id=organization.designated_contact_id,
            designated_contact_name=contact.display_name if contact else None,
        )

    async def get_organization(self, organization_id: str) -> Optional[OrganizationDB]:
        return self.organizations.get(organization_id)

    async def upsert_organization(self, organization: OrganizationDB) -> OrganizationDB:
        self.organizations[organization.id] = organization
        return organization

    async def get_individual(self, individual_id: str) -> Optional[IndividualDB]:
        return self.individuals.get(individual_id)

    async def upsert_individual(self, individual: IndividualDB) -> IndividualDB:
        self.individuals[individual.id] = individual
        return individual


def organization_ref(org_id: str) -> CustomerReference:
    return CustomerReference(kind=CustomerKind.ORGANIZATION, id=org_id)


def individual_ref(individual_id: str) -> CustomerReference:
    return CustomerReference(kind=CustomerKind.INDIVIDUAL, id=individual_id)


@pytest.fixture
def memory_store():
    return InMemoryRecordStore()


@pytest.fixture
def locking_store():
    """Store without conditional inserts whose open case query yields to other tasks."""
    return InMemoryRecordStore(conditional_insert=False, query_delay=0.01)


@pytest.fixture
def seeded_store(memory_store):
    """Org B -> Jane Doe, Org C -> John Roe, Org D without a designated contact."""
    memory_store.individuals["ind-1"] = IndividualDB(
        id="ind-1", display_name="Jane Doe", email="jane@example.com", mobile_phone=None
    )
    memory_store.individuals["ind-2"] = IndividualDB(id="ind-2", display_name="John Roe")
    memory_store.organizations["org-b"] = OrganizationDB(id="org-b", name="Org B", designated_contact_id="ind-1")
    memory_store.organizations["org-c"] = OrganizationDB(id="org-c", name="Org C", designated_contact_id="ind-2")
    memory_store.organizations["org-d"] = OrganizationDB(id="org-d", name="Org D", designated_contact_id=None)
    return memory_store


@pytest.fixture
def org_ref():
    return organization_ref


@pytest.fixture
def ind_ref():
    return individual_ref


@pytest.fixture
def contact_of():
    def _factory(individual_id: str, name: Optional[str] = None) -> ContactReference:
        return ContactReference(id=individual_id, name=name)
    return _factory
