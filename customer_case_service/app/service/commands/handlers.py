# Command Handler Implementation
import logging
import time
from typing import Any, Dict, Optional

from opentelemetry import trace
from pydantic import BaseModel

from .models import CreateCaseCommand, ChangeCaseCustomerCommand, ChangeCaseStateCommand
from customer_case_service.app.models import CaseDB, CaseState
from customer_case_service.app.observability import case_creation_latency_histogram
from customer_case_service.app.service.exceptions import ActiveCaseExistsError, ConfigurationError, RecordNotFoundError
from customer_case_service.app.service.guard.active_case_guard import ActiveCaseGuard
from customer_case_service.app.service.guard.creation_locks import CaseCreationLocks
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.contact_resolution import (
    ContactResolutionEngine,
    ResolutionResult,
)
from customer_case_service.app.service.resolution.stored_case_form import StoredCaseForm

logger = logging.getLogger(__name__)


class CustomerChangeOutcome(BaseModel):
    case: CaseDB
    resolution: ResolutionResult
    directives: Dict[str, Any]


async def handle_create_case_command(
    store: AbstractRecordStore,
    command: CreateCaseCommand,
    creation_locks: Optional[CaseCreationLocks] = None,
    guard: Optional[ActiveCaseGuard] = None
) -> CaseDB:
    """
    Runs the active case guard and commits the new case.

    The store's conditional insert closes the gap between check and commit. For
    stores without one, check and commit run under a per-customer lock.
    """
    started = time.perf_counter()
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", "CreateCaseCommand")
    current_span.set_attribute("command.id", command.command_id)

    candidate = CaseDB(
        title=command.title,
        description=command.description,
        customer=command.customer,
        primary_contact=command.primary_contact,
        state=CaseState.OPEN,
    )
    customer_id = command.customer.id if command.customer else None
    logger.info(f"Handling CreateCaseCommand: {command.command_id} for customer {customer_id}")

    guard = guard or ActiveCaseGuard(store)

    if store.supports_conditional_insert:
        decision = await guard.evaluate(candidate)
        await store.insert_case_if_no_open_case(candidate)
    else:
        async with _required_locks(creation_locks).hold(customer_id or ""):
            decision = await guard.evaluate(candidate)
            await store.insert_case(candidate)

    current_span.add_event("CaseCreated", {"case.id": candidate.id, "customer.id": decision.customer_id})
    case_creation_latency_histogram.record(time.perf_counter() - started)
    logger.info(f"Case {candidate.id} created for customer {decision.customer_id}.")
    return candidate


def _required_locks(creation_locks: Optional[CaseCreationLocks]) -> CaseCreationLocks:
    if creation_locks is None:
        raise ConfigurationError(
            "Record store has no conditional insert and no creation locks were provided."
        )
    return creation_locks


async def _reject_other_open_case(store: AbstractRecordStore, customer_id: str, case_id: str) -> None:
    # The case being changed may itself be open for this customer.
    open_cases = await store.find_open_cases(customer_id, limit=2)
    if any(case.id != case_id for case in open_cases):
        logger.warning(f"Case {case_id} would give customer {customer_id} a second open case.")
        raise ActiveCaseExistsError(customer_id=customer_id)


async def handle_change_case_customer_command(
    store: AbstractRecordStore,
    command: ChangeCaseCustomerCommand,
    engine: ContactResolutionEngine,
    creation_locks: Optional[CaseCreationLocks] = None
) -> CustomerChangeOutcome:
    """
    Updates the case's customer, then resolves its primary contact against the store.

    Moving an open case to a customer that already has one is rejected. Stores
    without conditional writes get the check under the new customer's lock.
    """
    logger.info(f"Handling ChangeCaseCustomerCommand: {command.command_id} for case {command.case_id}")

    if store.supports_conditional_insert:
        updated = await store.update_case_customer(command.case_id, command.customer)
    else:
        customer_id = command.customer.id
        async with _required_locks(creation_locks).hold(customer_id):
            current = await store.get_case(command.case_id)
            if current is not None and current.is_open:
                await _reject_other_open_case(store, customer_id, command.case_id)
            updated = await store.update_case_customer(command.case_id, command.customer)
    if updated is None:
        raise RecordNotFoundError("case", command.case_id)

    form = StoredCaseForm(store, command.case_id)
    resolution = await engine.resolve(form)

    case = await store.get_case(command.case_id) or updated
    return CustomerChangeOutcome(case=case, resolution=resolution, directives=form.directives.as_dict())


async def handle_change_case_state_command(
    store: AbstractRecordStore,
    command: ChangeCaseStateCommand,
    creation_locks: Optional[CaseCreationLocks] = None
) -> CaseDB:
    logger.info(f"Handling ChangeCaseStateCommand: {command.command_id} for case {command.case_id} -> {command.new_state}")
    new_state = CaseState(command.new_state)
    if store.supports_conditional_insert or new_state != CaseState.OPEN:
        updated = await store.update_case_state(command.case_id, new_state)
    else:
        current = await store.get_case(command.case_id)
        if current is None:
            raise RecordNotFoundError("case", command.case_id)
        if current.customer is None:
            updated = await store.update_case_state(command.case_id, new_state)
        else:
            customer_id = current.customer.id
            async with _required_locks(creation_locks).hold(customer_id):
                await _reject_other_open_case(store, customer_id, command.case_id)
                updated = await store.update_case_state(command.case_id, new_state)
    if updated is None:
        raise RecordNotFoundError("case", command.case_id)
    return updated
