import pytest
from unittest.mock import AsyncMock, MagicMock

from customer_case_service.app.models import CaseDB, CaseState, CustomerReference
from customer_case_service.app.service.exceptions import (
    ActiveCaseExistsError,
    CaseCreationRejectedError,
    MissingCaseTargetError,
    MissingCustomerReferenceError,
    UnexpectedGuardError,
)
from customer_case_service.app.service.guard.active_case_guard import ActiveCaseGuard
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore


@pytest.fixture
def mock_store():
    store = MagicMock(spec=AbstractRecordStore)
    store.find_open_cases = AsyncMock(return_value=[])
    return store


@pytest.mark.asyncio
async def test_evaluate_accepts_when_customer_has_no_open_case(mock_store, org_ref):
    guard = ActiveCaseGuard(mock_store)
    candidate = CaseDB(title="Printer on fire", customer=org_ref("org-a"))

    decision = await guard.evaluate(candidate)

    assert decision.accepted is True
    assert decision.customer_id == "org-a"
    mock_store.find_open_cases.assert_awaited_once_with("org-a", limit=1)
    assert decision.trace[0] == "Stage 1: Guard evaluation started"
    assert decision.trace[-1].endswith("No existing case for customer. Case creation allowed.")
    assert [entry.split(":")[0] for entry in decision.trace] == [
        f"Stage {n}" for n in range(1, len(decision.trace) + 1)
    ]


@pytest.mark.asyncio
async def test_evaluate_rejects_when_open_case_exists(mock_store, org_ref):
    mock_store.find_open_cases.return_value = [CaseDB(title="Existing", customer=org_ref("org-a"))]
    guard = ActiveCaseGuard(mock_store)

    with pytest.raises(ActiveCaseExistsError) as exc_info:
        await guard.evaluate(CaseDB(title="Second", customer=org_ref("org-a")))

    assert exc_info.value.customer_id == "org-a"
    assert str(exc_info.value) == "Case already exists for customer ID: org-a."
    assert "Case creation aborted" in exc_info.value.trace[-1]


@pytest.mark.asyncio
async def test_evaluate_rejects_missing_candidate(mock_store):
    guard = ActiveCaseGuard(mock_store)

    with pytest.raises(MissingCaseTargetError) as exc_info:
        await guard.evaluate(None)

    assert str(exc_info.value) == "Cannot retrieve target case from context."
    mock_store.find_open_cases.assert_not_awaited()


@pytest.mark.asyncio
async def test_evaluate_rejects_candidate_without_customer(mock_store):
    guard = ActiveCaseGuard(mock_store)

    with pytest.raises(MissingCustomerReferenceError) as exc_info:
        await guard.evaluate(CaseDB(title="No customer"))

    assert str(exc_info.value) == "Cannot retrieve customer ID from case."
    assert exc_info.value.trace[-1].endswith("Unable to retrieve customer ID.")
    mock_store.find_open_cases.assert_not_awaited()


@pytest.mark.asyncio
async def test_evaluate_rejects_blank_customer_id(mock_store):
    guard = ActiveCaseGuard(mock_store)
    blank = CustomerReference.model_construct(kind="ORGANIZATION", id="   ", name=None)
    candidate = CaseDB.model_construct(title="Blank", customer=blank, state=CaseState.OPEN.value)

    with pytest.raises(MissingCustomerReferenceError) as exc_info:
        await guard.evaluate(candidate)

    assert "not a valid typed identifier" in str(exc_info.value)
    mock_store.find_open_cases.assert_not_awaited()


@pytest.mark.asyncio
async def test_evaluate_wraps_unexpected_store_failure(mock_store, ind_ref):
    store_error = RuntimeError("socket closed")
    mock_store.find_open_cases.side_effect = store_error
    guard = ActiveCaseGuard(mock_store)

    with pytest.raises(UnexpectedGuardError) as exc_info:
        await guard.evaluate(CaseDB(title="Boom", customer=ind_ref("ind-9")))

    assert str(exc_info.value) == "An unexpected error has occurred."
    assert exc_info.value.__cause__ is store_error
    assert isinstance(exc_info.value, CaseCreationRejectedError)


@pytest.mark.asyncio
async def test_evaluate_performs_no_writes(mock_store, org_ref):
    guard = ActiveCaseGuard(mock_store)

    await guard.evaluate(CaseDB(title="Read only", customer=org_ref("org-a")))

    mock_store.insert_case.assert_not_called()
    mock_store.insert_case_if_no_open_case.assert_not_called()
    mock_store.update_case_state.assert_not_called()
