from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from customer_case_service.app.config import settings
from customer_case_service.app.service.guard.creation_locks import CaseCreationLocks
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.contact_resolution import (
    ContactResolutionEngine,
    GenerationTracker,
)
from customer_case_service.infrastructure.database.connection import get_db
from customer_case_service.infrastructure.database.record_store import MongoRecordStore

# Process wide: locks and generations must outlive a single request.
_case_creation_locks = CaseCreationLocks()
_generation_tracker = GenerationTracker()


def get_record_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> AbstractRecordStore:
    """
    FastAPI dependency provider for the MongoDB backed record store.
    """
    return MongoRecordStore(db, conditional_insert=settings.ENFORCE_OPEN_CASE_INDEX)


def get_case_creation_locks() -> CaseCreationLocks:
    return _case_creation_locks


def get_generation_tracker() -> GenerationTracker:
    return _generation_tracker


def get_contact_resolution_engine(
    store: AbstractRecordStore = Depends(get_record_store),
    generations: GenerationTracker = Depends(get_generation_tracker)
) -> ContactResolutionEngine:
    return ContactResolutionEngine(store, generations=generations)
