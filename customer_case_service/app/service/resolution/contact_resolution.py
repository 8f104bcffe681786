# Primary contact resolution for cases linked to a customer
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from customer_case_service.app.config import settings
from customer_case_service.app.models import ContactReference, CustomerKind, CustomerReference
from customer_case_service.app.observability import tracer, contact_resolution_outcomes_counter
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.form_context import (
    PRIMARY_CONTACT_FIELD,
    CaseFieldAccess,
    PreviewForm,
    RequiredLevel,
)

logger = logging.getLogger(__name__)


class ResolutionState(str, Enum):
    UNCLASSIFIED = "UNCLASSIFIED"
    CLASSIFYING = "CLASSIFYING"
    ORGANIZATION_FLOW = "ORGANIZATION_FLOW"
    INDIVIDUAL_FLOW = "INDIVIDUAL_FLOW"
    SETTLED = "SETTLED"


class ResolutionOutcome(str, Enum):
    IDLE = "IDLE"                               # No customer on the case
    CONTACT_HIDDEN = "CONTACT_HIDDEN"           # Individual customer
    CONTACT_APPLIED = "CONTACT_APPLIED"
    CONTACT_ALREADY_SET = "CONTACT_ALREADY_SET"
    PENDING_CONTACT = "PENDING_CONTACT"         # Organization has no designated contact
    LOOKUP_FAILED = "LOOKUP_FAILED"
    STALE_DISCARDED = "STALE_DISCARDED"
    FAILED = "FAILED"


class ResolutionResult(BaseModel):
    case_key: str
    generation: int
    state: ResolutionState
    flow: Optional[ResolutionState] = None
    outcome: ResolutionOutcome
    contact: Optional[ContactReference] = None


class GenerationTracker:
    """
    Monotonic per-case counter; a result is applicable only for the latest generation.

    Every advance() must be paired with a settle() once that resolution is over.
    A case's entry is dropped when nothing is in flight for it, since no older
    generation is left to compare against.
    """

    def __init__(self):
        self._generations: Dict[str, int] = {}
        self._in_flight: Dict[str, int] = {}

    def advance(self, case_key: str) -> int:
        self._generations[case_key] = self._generations.get(case_key, 0) + 1
        self._in_flight[case_key] = self._in_flight.get(case_key, 0) + 1
        return self._generations[case_key]

    def settle(self, case_key: str) -> None:
        remaining = self._in_flight.get(case_key, 0) - 1
        if remaining > 0:
            self._in_flight[case_key] = remaining
            return
        self._in_flight.pop(case_key, None)
        self._generations.pop(case_key, None)

    def current(self, case_key: str) -> int:
        return self._generations.get(case_key, 0)

    def is_current(self, case_key: str, generation: int) -> bool:
        return self.current(case_key) == generation

    def __len__(self) -> int:
        return len(self._generations)


def has_value(value: Any) -> bool:
    if value is None:
        return False
    return bool(value)


class ContactResolutionEngine:
    """
    Keeps a case's primary contact and contact preview consistent with its customer.

    Each customer change advances the case's generation. The organization
    lookup is the only suspension point; when it completes, the result is
    written only if the generation is unchanged, the form still references the
    same customer and the primary contact is still unset. Superseded lookups
    are allowed to finish and are dropped.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        generations: Optional[GenerationTracker] = None,
        preview_fields: Optional[Iterable[str]] = None
    ):
        self.store = store
        self.generations = generations if generations is not None else GenerationTracker()
        self.preview_fields = list(preview_fields if preview_fields is not None else settings.CONTACT_PREVIEW_FIELDS)
        self._pending: Dict[str, asyncio.Task] = {}

    def customer_changed(self, form: CaseFieldAccess) -> asyncio.Task:
        """Schedules resolution for a customer change. Must be called from a running loop."""
        case_key = form.case_key
        generation = self.generations.advance(case_key)
        task = asyncio.get_running_loop().create_task(
            self._resolve(form, generation),
            name=f"contact-resolution-{case_key}-{generation}",
        )
        self._pending[case_key] = task
        # Done callbacks also run for tasks cancelled before their first step.
        task.add_done_callback(lambda done, key=case_key: self._forget(key, done))
        return task

    async def resolve(self, form: CaseFieldAccess) -> ResolutionResult:
        """Handles a customer change inline and returns once it has settled."""
        case_key = form.case_key
        generation = self.generations.advance(case_key)
        try:
            return await self._resolve(form, generation)
        finally:
            self.generations.settle(case_key)

    def cancel_pending(self, case_key: str) -> bool:
        task = self._pending.get(case_key)
        if task is None or task.done():
            return False
        return task.cancel()

    def _forget(self, case_key: str, task: asyncio.Task) -> None:
        self.generations.settle(case_key)
        if self._pending.get(case_key) is task:
            del self._pending[case_key]

    async def _resolve(self, form: CaseFieldAccess, generation: int) -> ResolutionResult:
        with tracer.start_as_current_span("contact_resolution.resolve") as span:
            span.set_attribute("case.key", form.case_key)
            span.set_attribute("resolution.generation", generation)
            try:
                result = await self._run(form, generation)
            except Exception as e:
                logger.error(f"Error displaying primary contact for case {form.case_key}: {e}", exc_info=True)
                span.record_exception(e)
                form.notify_user(f"Error displaying primary contact: {e}")
                result = self._result(form, generation, ResolutionState.SETTLED, ResolutionOutcome.FAILED)
            span.set_attribute("resolution.outcome", result.outcome.value)
            contact_resolution_outcomes_counter.add(1, {"outcome": result.outcome.value})
            return result

    async def _run(self, form: CaseFieldAccess, generation: int) -> ResolutionResult:
        if not self.generations.is_current(form.case_key, generation):
            return self._stale(form, generation, None)

        customer = await form.get_customer()
        if customer is None:
            return self._result(form, generation, ResolutionState.UNCLASSIFIED, ResolutionOutcome.IDLE)

        logger.debug(f"Classifying customer {customer.kind} {customer.id} for case {form.case_key}.")
        if customer.kind == CustomerKind.INDIVIDUAL:
            # Stored primary contact is left as is, it is simply not authoritative.
            form.set_required_level(PRIMARY_CONTACT_FIELD, RequiredLevel.NONE)
            form.set_visible(PRIMARY_CONTACT_FIELD, False)
            return self._result(
                form, generation, ResolutionState.SETTLED, ResolutionOutcome.CONTACT_HIDDEN,
                flow=ResolutionState.INDIVIDUAL_FLOW,
            )
        if customer.kind != CustomerKind.ORGANIZATION:
            logger.warning(f"Unsupported customer kind '{customer.kind}' on case {form.case_key}.")
            return self._result(form, generation, ResolutionState.UNCLASSIFIED, ResolutionOutcome.IDLE)

        return await self._organization_flow(form, generation, customer)

    async def _organization_flow(
        self,
        form: CaseFieldAccess,
        generation: int,
        customer: CustomerReference
    ) -> ResolutionResult:
        flow = ResolutionState.ORGANIZATION_FLOW
        form.set_required_level(PRIMARY_CONTACT_FIELD, RequiredLevel.REQUIRED)
        form.set_visible(PRIMARY_CONTACT_FIELD, True)

        try:
            organization_contact = await self.store.get_organization_contact(customer.id)
        except Exception as e:
            if not self.generations.is_current(form.case_key, generation):
                return self._stale(form, generation, flow)
            logger.warning(f"Error retrieving organization {customer.id} for case {form.case_key}: {e}")
            form.notify_user(f"Error retrieving organization: {e}")
            return self._result(form, generation, ResolutionState.SETTLED, ResolutionOutcome.LOOKUP_FAILED, flow=flow)

        if not self.generations.is_current(form.case_key, generation):
            return self._stale(form, generation, flow)
        if not customer.refers_to(await form.get_customer()):
            return self._stale(form, generation, flow)

        if not organization_contact.designated_contact_id:
            logger.info(f"Organization {customer.id} has no designated contact; case {form.case_key} left pending.")
            return self._result(form, generation, ResolutionState.SETTLED, ResolutionOutcome.PENDING_CONTACT, flow=flow)

        existing = await form.get_primary_contact()
        if existing is not None:
            return self._result(
                form, generation, ResolutionState.SETTLED, ResolutionOutcome.CONTACT_ALREADY_SET,
                flow=flow, contact=existing,
            )

        contact = ContactReference(
            id=organization_contact.designated_contact_id,
            name=organization_contact.designated_contact_name,
        )
        if not await form.set_primary_contact_if_unset(contact, customer):
            return self._stale(form, generation, flow)

        logger.info(f"Primary contact {contact.id} resolved from organization {customer.id} for case {form.case_key}.")
        return self._result(
            form, generation, ResolutionState.SETTLED, ResolutionOutcome.CONTACT_APPLIED,
            flow=flow, contact=contact,
        )

    def _stale(self, form: CaseFieldAccess, generation: int, flow: Optional[ResolutionState]) -> ResolutionResult:
        logger.debug(f"Discarding superseded resolution {generation} for case {form.case_key}.")
        return self._result(form, generation, ResolutionState.SETTLED, ResolutionOutcome.STALE_DISCARDED, flow=flow)

    @staticmethod
    def _result(
        form: CaseFieldAccess,
        generation: int,
        state: ResolutionState,
        outcome: ResolutionOutcome,
        flow: Optional[ResolutionState] = None,
        contact: Optional[ContactReference] = None
    ) -> ResolutionResult:
        return ResolutionResult(
            case_key=form.case_key,
            generation=generation,
            state=state,
            flow=flow,
            outcome=outcome,
            contact=contact,
        )

    def preview_loaded(self, preview: PreviewForm) -> Dict[str, bool]:
        """
        Shows each preview field iff it holds a value. Safe to run repeatedly.

        A failing preview is reported through the preview itself; the fields
        already handled keep their visibility.
        """
        visibility: Dict[str, bool] = {}
        try:
            if not preview.is_loaded():
                return visibility
            for field in self.preview_fields:
                visible = has_value(preview.get_value(field))
                preview.set_visible(field, visible)
                visibility[field] = visible
        except Exception as e:
            logger.error(f"Error setting quick view visibility: {e}", exc_info=True)
            preview.notify_user(f"Error setting quick view visibility: {e}")
        return visibility
