# MongoDB implementation of the record store
import logging
import datetime
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from customer_case_service.app.config import settings
from customer_case_service.app.models import (
    CaseDB,
    CaseState,
    ContactReference,
    CustomerReference,
    IndividualDB,
    OrganizationContact,
    OrganizationDB,
)
from customer_case_service.app.service.exceptions import ActiveCaseExistsError, RecordNotFoundError
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore

logger = logging.getLogger(__name__)

OPEN_CASE_INDEX_NAME = "uniq_open_case_per_customer"


async def ensure_indexes(db: AsyncIOMotorDatabase, enforce_open_case_index: bool = True) -> None:
    """Creates the lookup indexes, and the open case uniqueness index if enforced."""
    cases = db[settings.CASES_COLLECTION]
    await cases.create_index([("id", ASCENDING)], unique=True)
    await cases.create_index([("customer.id", ASCENDING), ("state", ASCENDING)])
    if enforce_open_case_index:
        # At most one OPEN document per customer; closed cases fall outside the filter.
        await cases.create_index(
            [("customer.id", ASCENDING)],
            name=OPEN_CASE_INDEX_NAME,
            unique=True,
            partialFilterExpression={"state": CaseState.OPEN.value},
        )
    await db[settings.ORGANIZATIONS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    await db[settings.INDIVIDUALS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    logger.info(f"Record store indexes ensured (open case index enforced: {enforce_open_case_index}).")


class MongoRecordStore(AbstractRecordStore):
    def __init__(self, db: AsyncIOMotorDatabase, conditional_insert: bool = True):
        self.db = db
        # Only valid when ensure_indexes created the partial unique index.
        self.supports_conditional_insert = conditional_insert

    @property
    def _cases(self):
        return self.db[settings.CASES_COLLECTION]

    async def find_open_cases(self, customer_id: str, limit: int = 1) -> List[CaseDB]:
        query_filter = {"customer.id": customer_id, "state": CaseState.OPEN.value}
        cursor = self._cases.find(query_filter, {"_id": 0}).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [CaseDB(**doc) for doc in docs]

    async def get_case(self, case_id: str) -> Optional[CaseDB]:
        doc = await self._cases.find_one({"id": case_id})
        return CaseDB(**doc) if doc else None

    async def list_cases(
        self,
        customer_id: Optional[str] = None,
        state: Optional[CaseState] = None,
        limit: int = 10,
        skip: int = 0
    ) -> List[CaseDB]:
        query_filter: Dict[str, Any] = {}
        if customer_id:
            query_filter["customer.id"] = customer_id
        if state:
            query_filter["state"] = CaseState(state).value
        cursor = self._cases.find(query_filter).sort("created_at", DESCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [CaseDB(**doc) for doc in docs]

    async def insert_case(self, case: CaseDB) -> CaseDB:
        await self._cases.insert_one(case.model_dump())
        logger.info(f"Case inserted with ID: {case.id}")
        return case

    async def insert_case_if_no_open_case(self, case: CaseDB) -> CaseDB:
        if not self.supports_conditional_insert:
            raise NotImplementedError(f"{type(self).__name__} does not support conditional inserts.")
        try:
            await self._cases.insert_one(case.model_dump())
        except DuplicateKeyError as e:
            customer_id = case.customer.id if case.customer else ""
            logger.warning(f"Store rejected case {case.id}: open case already exists for customer {customer_id}. {e}")
            raise ActiveCaseExistsError(customer_id=customer_id) from e
        logger.info(f"Case inserted with ID: {case.id} (open case uniqueness enforced by store)")
        return case

    async def _update_case(self, case_id: str, set_operations: Dict[str, Any], customer_id: str) -> Optional[CaseDB]:
        set_operations["updated_at"] = datetime.datetime.now(datetime.UTC)
        try:
            doc = await self._cases.find_one_and_update(
                {"id": case_id},
                {"$set": set_operations},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning(f"Update of case {case_id} would leave customer {customer_id} with two open cases.")
            raise ActiveCaseExistsError(customer_id=customer_id) from e
        if not doc:
            logger.warning(f"Case ID: {case_id} not found for update.")
            return None
        return CaseDB(**doc)

    async def update_case_customer(self, case_id: str, customer: CustomerReference) -> Optional[CaseDB]:
        updated = await self._update_case(case_id, {"customer": customer.model_dump()}, customer.id)
        if updated:
            logger.info(f"Case ID: {case_id} now references {customer.kind} {customer.id}.")
        return updated

    async def update_case_state(self, case_id: str, state: CaseState) -> Optional[CaseDB]:
        current = await self.get_case(case_id)
        if current is None:
            logger.warning(f"Case ID: {case_id} not found for state update.")
            return None
        customer_id = current.customer.id if current.customer else ""
        updated = await self._update_case(case_id, {"state": CaseState(state).value}, customer_id)
        if updated:
            logger.info(f"Case ID: {case_id} state set to {updated.state}.")
        return updated

    async def set_primary_contact_if_unset(
        self,
        case_id: str,
        contact: ContactReference,
        expected_customer_id: str
    ) -> bool:
        # A null match also covers documents where the field is missing.
        result = await self._cases.update_one(
            {"id": case_id, "customer.id": expected_customer_id, "primary_contact": None},
            {"$set": {
                "primary_contact": contact.model_dump(),
                "updated_at": datetime.datetime.now(datetime.UTC),
            }},
        )
        if result.modified_count == 0:
            logger.info(f"Primary contact for case {case_id} not written: already set or customer changed.")
            return False
        logger.info(f"Primary contact {contact.id} written to case {case_id}.")
        return True

    async def get_organization_contact(self, organization_id: str) -> OrganizationContact:
        pipeline = [
            {"$match": {"id": organization_id}},
            {"$limit": 1},
            {"$lookup": {
                "from": settings.INDIVIDUALS_COLLECTION,
                "localField": "designated_contact_id",
                "foreignField": "id",
                "as": "designated_contact",
            }},
            {"$project": {
                "_id": 0,
                "id": 1,
                "designated_contact_id": 1,
                "designated_contact_name": {"$arrayElemAt": ["$designated_contact.display_name", 0]},
            }},
        ]
        docs = await self.db[settings.ORGANIZATIONS_COLLECTION].aggregate(pipeline).to_list(length=1)
        if not docs:
            raise RecordNotFoundError("organization", organization_id)
        return OrganizationContact(**docs[0])

    async def get_organization(self, organization_id: str) -> Optional[OrganizationDB]:
        doc = await self.db[settings.ORGANIZATIONS_COLLECTION].find_one({"id": organization_id})
        return OrganizationDB(**doc) if doc else None

    async def upsert_organization(self, organization: OrganizationDB) -> OrganizationDB:
        organization_dict = organization.model_dump()
        organization_dict["updated_at"] = datetime.datetime.now(datetime.UTC)
        await self.db[settings.ORGANIZATIONS_COLLECTION].replace_one(
            {"id": organization.id},
            organization_dict,
            upsert=True
        )
        logger.info(f"Organization upserted for ID: {organization.id}")
        return organization

    async def get_individual(self, individual_id: str) -> Optional[IndividualDB]:
        doc = await self.db[settings.INDIVIDUALS_COLLECTION].find_one({"id": individual_id})
        return IndividualDB(**doc) if doc else None

    async def upsert_individual(self, individual: IndividualDB) -> IndividualDB:
        individual_dict = individual.model_dump()
        individual_dict["updated_at"] = datetime.datetime.now(datetime.UTC)
        await self.db[settings.INDIVIDUALS_COLLECTION].replace_one(
            {"id": individual.id},
            individual_dict,
            upsert=True
        )
        logger.info(f"Individual upserted for ID: {individual.id}")
        return individual
