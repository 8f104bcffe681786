# API Router for Cases
from fastapi import APIRouter, Depends, HTTPException, Body
import logging
from typing import List, Optional

from customer_case_service.app.dependencies.record_store import (
    get_case_creation_locks,
    get_contact_resolution_engine,
    get_record_store,
)
from customer_case_service.app.models import CaseDB, CaseState, CustomerReference
from customer_case_service.app.service.commands.handlers import (
    CustomerChangeOutcome,
    handle_change_case_customer_command,
    handle_change_case_state_command,
    handle_create_case_command,
)
from customer_case_service.app.service.commands.models import (
    ChangeCaseCustomerCommand,
    ChangeCaseStateCommand,
    CreateCaseCommand,
)
from customer_case_service.app.service.exceptions import (
    ActiveCaseExistsError,
    MissingCaseTargetError,
    MissingCustomerReferenceError,
    RecordNotFoundError,
    UnexpectedGuardError,
)
from customer_case_service.app.service.guard.creation_locks import CaseCreationLocks
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.contact_resolution import ContactResolutionEngine

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/cases/{case_id}", response_model=Optional[CaseDB], tags=["Cases"])
async def get_case_by_id(case_id: str, store: AbstractRecordStore = Depends(get_record_store)):
    try:
        case = await store.get_case(case_id)
    except Exception as e:
        logger.error(f"Error retrieving case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve case {case_id}")
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


@router.get("/cases", response_model=List[CaseDB], tags=["Cases"])
async def list_cases(
    customer_id: Optional[str] = None,
    state: Optional[CaseState] = None,
    limit: int = 10,
    skip: int = 0,
    store: AbstractRecordStore = Depends(get_record_store)
):
    try:
        return await store.list_cases(customer_id=customer_id, state=state, limit=limit, skip=skip)
    except Exception as e:
        logger.error(f"Error listing cases: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list cases")


@router.post(
    "/cases",
    status_code=201,
    response_model=CaseDB,
    summary="Create a new case",
    tags=["Cases"],
)
async def create_case_api(
    request_data: CreateCaseCommand = Body(...),
    store: AbstractRecordStore = Depends(get_record_store),
    creation_locks: CaseCreationLocks = Depends(get_case_creation_locks)
):
    """
    Create a case, rejected when its customer already has an open case.
    """
    try:
        return await handle_create_case_command(store, request_data, creation_locks=creation_locks)
    except ActiveCaseExistsError as e:
        logger.warning(f"Case creation rejected for customer {e.customer_id}: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except (MissingCaseTargetError, MissingCustomerReferenceError) as e:
        logger.warning(f"Case creation rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except UnexpectedGuardError as e:
        logger.error(f"Active case guard failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error creating case: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while creating the case.")


@router.put(
    "/cases/{case_id}/customer",
    response_model=CustomerChangeOutcome,
    summary="Change the customer of a case and resolve its primary contact",
    tags=["Cases"],
)
async def change_case_customer_api(
    case_id: str,
    customer: CustomerReference = Body(...),
    store: AbstractRecordStore = Depends(get_record_store),
    engine: ContactResolutionEngine = Depends(get_contact_resolution_engine),
    creation_locks: CaseCreationLocks = Depends(get_case_creation_locks)
):
    try:
        command = ChangeCaseCustomerCommand(case_id=case_id, customer=customer)
        return await handle_change_case_customer_command(store, command, engine, creation_locks=creation_locks)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ActiveCaseExistsError as e:
        logger.warning(f"Customer change rejected for case {case_id}: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error changing customer of case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to change customer of case {case_id}")


async def _change_state(
    case_id: str,
    new_state: CaseState,
    store: AbstractRecordStore,
    creation_locks: CaseCreationLocks
) -> CaseDB:
    try:
        command = ChangeCaseStateCommand(case_id=case_id, new_state=new_state)
        return await handle_change_case_state_command(store, command, creation_locks=creation_locks)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ActiveCaseExistsError as e:
        logger.warning(f"State change to {new_state.value} rejected for case {case_id}: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error changing state of case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to change state of case {case_id}")


@router.post("/cases/{case_id}/resolve", response_model=CaseDB, tags=["Cases"])
async def resolve_case_api(
    case_id: str,
    store: AbstractRecordStore = Depends(get_record_store),
    creation_locks: CaseCreationLocks = Depends(get_case_creation_locks)
):
    return await _change_state(case_id, CaseState.RESOLVED, store, creation_locks)


@router.post("/cases/{case_id}/cancel", response_model=CaseDB, tags=["Cases"])
async def cancel_case_api(
    case_id: str,
    store: AbstractRecordStore = Depends(get_record_store),
    creation_locks: CaseCreationLocks = Depends(get_case_creation_locks)
):
    return await _change_state(case_id, CaseState.CANCELLED, store, creation_locks)


@router.post("/cases/{case_id}/reopen", response_model=CaseDB, tags=["Cases"])
async def reopen_case_api(
    case_id: str,
    store: AbstractRecordStore = Depends(get_record_store),
    creation_locks: CaseCreationLocks = Depends(get_case_creation_locks)
):
    return await _change_state(case_id, CaseState.OPEN, store, creation_locks)
