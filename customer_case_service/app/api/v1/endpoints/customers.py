# API Router for Organizations and Individuals
from fastapi import APIRouter, Depends, HTTPException, Body
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from customer_case_service.app.dependencies.record_store import get_contact_resolution_engine, get_record_store
from customer_case_service.app.models import IndividualDB, OrganizationContact, OrganizationDB
from customer_case_service.app.service.exceptions import RecordNotFoundError
from customer_case_service.app.service.interfaces.record_store import AbstractRecordStore
from customer_case_service.app.service.resolution.contact_resolution import ContactResolutionEngine
from customer_case_service.app.service.resolution.form_context import RecordPreviewForm

logger = logging.getLogger(__name__)
router = APIRouter()


class OrganizationUpsertRequest(BaseModel):
    name: str
    designated_contact_id: Optional[str] = None


class IndividualUpsertRequest(BaseModel):
    display_name: str
    email: Optional[str] = None
    mobile_phone: Optional[str] = None


class IndividualQuickView(BaseModel):
    individual: IndividualDB
    visible_fields: Dict[str, bool]
    messages: List[str] = []


@router.put("/organizations/{organization_id}", response_model=OrganizationDB, tags=["Organizations"])
async def upsert_organization_api(
    organization_id: str,
    request_data: OrganizationUpsertRequest = Body(...),
    store: AbstractRecordStore = Depends(get_record_store)
):
    try:
        organization = OrganizationDB(id=organization_id, **request_data.model_dump())
        return await store.upsert_organization(organization)
    except Exception as e:
        logger.error(f"Error upserting organization {organization_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to store organization {organization_id}")


@router.get("/organizations/{organization_id}", response_model=OrganizationDB, tags=["Organizations"])
async def get_organization_api(organization_id: str, store: AbstractRecordStore = Depends(get_record_store)):
    organization = await store.get_organization(organization_id)
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization


@router.get(
    "/organizations/{organization_id}/designated-contact",
    response_model=OrganizationContact,
    tags=["Organizations"],
)
async def get_organization_designated_contact_api(
    organization_id: str,
    store: AbstractRecordStore = Depends(get_record_store)
):
    try:
        return await store.get_organization_contact(organization_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/individuals/{individual_id}", response_model=IndividualDB, tags=["Individuals"])
async def upsert_individual_api(
    individual_id: str,
    request_data: IndividualUpsertRequest = Body(...),
    store: AbstractRecordStore = Depends(get_record_store)
):
    try:
        individual = IndividualDB(id=individual_id, **request_data.model_dump())
        return await store.upsert_individual(individual)
    except Exception as e:
        logger.error(f"Error upserting individual {individual_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to store individual {individual_id}")


@router.get("/individuals/{individual_id}", response_model=IndividualDB, tags=["Individuals"])
async def get_individual_api(individual_id: str, store: AbstractRecordStore = Depends(get_record_store)):
    individual = await store.get_individual(individual_id)
    if not individual:
        raise HTTPException(status_code=404, detail="Individual not found")
    return individual


@router.get("/individuals/{individual_id}/quick-view", response_model=IndividualQuickView, tags=["Individuals"])
async def get_individual_quick_view_api(
    individual_id: str,
    store: AbstractRecordStore = Depends(get_record_store),
    engine: ContactResolutionEngine = Depends(get_contact_resolution_engine)
):
    """Contact preview as embedded in the case form, with empty fields hidden."""
    individual = await store.get_individual(individual_id)
    if not individual:
        raise HTTPException(status_code=404, detail="Individual not found")
    preview = RecordPreviewForm(individual.model_dump())
    visible_fields = engine.preview_loaded(preview)
    return IndividualQuickView(individual=individual, visible_fields=visible_fields, messages=preview.messages)
