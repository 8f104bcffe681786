from typing import Optional

from customer_case_service.app.models import CaseDB, ContactReference, CustomerReference
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.form_context import (
    CaseFieldAccess,
    FormDirectives,
    RequiredLevel,
)


class StoredCaseForm(CaseFieldAccess):
    """
    Case field access backed by the record store.

    Reads always go to the store so a resolution sees writes made by other
    requests, and the contact write is a conditional update evaluated by the
    store. Directives are collected for the HTTP response.
    """

    def __init__(self, store: AbstractRecordStore, case_id: str):
        self.store = store
        self.case_id = case_id
        self.directives = FormDirectives()

    @property
    def case_key(self) -> str:
        return self.case_id

    async def _load(self) -> Optional[CaseDB]:
        return await self.store.get_case(self.case_id)

    async def get_customer(self) -> Optional[CustomerReference]:
        case = await self._load()
        return case.customer if case else None

    async def get_primary_contact(self) -> Optional[ContactReference]:
        case = await self._load()
        return case.primary_contact if case else None

    async def set_primary_contact_if_unset(
        self,
        contact: ContactReference,
        expected_customer: CustomerReference
    ) -> bool:
        return await self.store.set_primary_contact_if_unset(
            self.case_id, contact, expected_customer_id=expected_customer.id
        )

    def set_required_level(self, field: str, level: RequiredLevel) -> None:
        self.directives.set_required_level(field, level)

    def set_visible(self, field: str, visible: bool) -> None:
        self.directives.set_visible(field, visible)

    def notify_user(self, message: str) -> None:
        self.directives.notify_user(message)
