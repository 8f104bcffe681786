# Active Case Guard: pre-commit check allowing one open case per customer
import logging
from typing import List, Optional

from opentelemetry import trace
from pydantic import BaseModel

from customer_case_service.app.models import CaseDB, CustomerReference
from customer_case_service.app.observability import tracer, case_guard_evaluations_counter
from customer_case_service.app.service.exceptions import (
    ActiveCaseExistsError,
    CaseCreationRejectedError,
    MissingCaseTargetError,
    MissingCustomerReferenceError,
    UnexpectedGuardError,
)
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore

logger = logging.getLogger(__name__)


class GuardDecision(BaseModel):
    accepted: bool
    customer_id: str
    trace: List[str] = []


class GuardTrace:
    """Numbered stage log of one evaluation, mirrored into the current span."""

    def __init__(self, span: Optional[trace.Span] = None):
        self.stages: List[str] = []
        self._span = span

    def stage(self, message: str) -> None:
        entry = f"Stage {len(self.stages) + 1}: {message}"
        self.stages.append(entry)
        logger.debug(entry)
        if self._span is not None:
            self._span.add_event("ActiveCaseGuardStage", {"stage": entry})


class ActiveCaseGuard:
    """
    Rejects the creation of a case whose customer already has an open case.

    The guard only reads from the record store. Callers are expected to run it
    immediately before committing the candidate and to abort on any raised
    CaseCreationRejectedError.
    """

    def __init__(self, store: AbstractRecordStore):
        self.store = store

    async def evaluate(self, candidate: Optional[CaseDB]) -> GuardDecision:
        with tracer.start_as_current_span("active_case_guard.evaluate") as span:
            guard_trace = GuardTrace(span)
            try:
                guard_trace.stage("Guard evaluation started")
                customer_id = self._validated_customer_id(candidate, guard_trace)

                span.set_attribute("customer.id", customer_id)
                guard_trace.stage("Built query for open cases of customer")

                existing_cases = await self.store.find_open_cases(customer_id, limit=1)
                guard_trace.stage("Executed open case query")

                if existing_cases:
                    guard_trace.stage(f"Found existing case for customer ID: {customer_id}. Case creation aborted.")
                    raise ActiveCaseExistsError(customer_id=customer_id, trace=guard_trace.stages)

                guard_trace.stage("No existing case for customer. Case creation allowed.")
                case_guard_evaluations_counter.add(1, {"outcome": "accepted"})
                return GuardDecision(accepted=True, customer_id=customer_id, trace=guard_trace.stages)

            except CaseCreationRejectedError as e:
                logger.warning(f"Active case guard rejected creation: {e}")
                span.set_attribute("guard.outcome", "rejected")
                case_guard_evaluations_counter.add(1, {"outcome": type(e).__name__})
                raise
            except Exception as e:
                logger.error(f"Unexpected error in active case guard: {e}", exc_info=True)
                span.record_exception(e)
                case_guard_evaluations_counter.add(1, {"outcome": "unexpected_error"})
                raise UnexpectedGuardError(trace=guard_trace.stages) from e

    @staticmethod
    def _validated_customer_id(candidate: Optional[CaseDB], guard_trace: GuardTrace) -> str:
        if candidate is None:
            guard_trace.stage("Unable to retrieve target case.")
            raise MissingCaseTargetError(trace=guard_trace.stages)
        guard_trace.stage("Retrieved target case")

        customer = candidate.customer
        if customer is None:
            guard_trace.stage("Unable to retrieve customer ID.")
            raise MissingCustomerReferenceError(trace=guard_trace.stages)
        if not isinstance(customer, CustomerReference) or not str(customer.id or "").strip():
            guard_trace.stage("Customer reference is not a valid typed identifier.")
            raise MissingCustomerReferenceError(
                "Customer reference on case is not a valid typed identifier.",
                trace=guard_trace.stages,
            )
        guard_trace.stage("Retrieved customer ID")
        return customer.id
