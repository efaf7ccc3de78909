"""
Customer Acceptance API - FastAPI router for acceptances and confirmations.
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from . import state
from .state import http_errors

router = APIRouter(prefix="/api/customer-acceptances", tags=["acceptances"])


class ItemSelection(BaseModel):
    quotation_item_id: str
    is_accepted: bool = True
    accepted_quantity: Optional[int] = None
    rejection_reason: Optional[str] = None
    customer_notes: Optional[str] = None
    delivery_requirement: Optional[str] = None
    priority: Literal['Low', 'Medium', 'High', 'Urgent'] = 'Medium'


class AcceptanceCreate(BaseModel):
    quotation_id: str
    acceptance_type: Literal['Full', 'Partial']
    accepted_by: str
    customer_email: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    items: list[ItemSelection] = []


class AcceptanceUpdate(BaseModel):
    accepted_by: Optional[str] = None
    customer_email: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    processed_by: Optional[str] = None
    status: Optional[Literal['Active', 'Superseded', 'Cancelled']] = None


class SupersedeRequest(BaseModel):
    quotation_id: str


class ConfirmationCreate(BaseModel):
    confirmation_type: Literal['Email', 'Phone', 'Portal', 'Document', 'Meeting']
    confirmation_method: str
    confirmed_by: str
    confirmed_at: Optional[datetime] = None
    confirmation_reference: Optional[str] = None
    confirmation_details: Optional[str] = None


def _with_items(acceptance) -> dict:
    payload = jsonable_encoder(acceptance)
    payload["items"] = jsonable_encoder(state.services.acceptances.get_item_acceptances(acceptance.id))
    return payload


@router.get("")
async def list_acceptances(quotation_id: Optional[str] = None):
    return jsonable_encoder(state.services.acceptances.list_acceptances(quotation_id))


@router.post("", status_code=201)
async def record_acceptance(req: AcceptanceCreate):
    """Record an acceptance; any Active acceptance of the quotation is superseded."""
    with http_errors():
        acceptance = state.services.acceptances.record_acceptance(
            quotation_id=req.quotation_id,
            acceptance_type=req.acceptance_type,
            accepted_by=req.accepted_by,
            items=[item.model_dump(exclude_unset=True, exclude_none=True) for item in req.items],
            customer_email=req.customer_email,
            customer_notes=req.customer_notes,
            internal_notes=req.internal_notes,
        )
    return _with_items(acceptance)


@router.post("/supersede")
async def supersede(req: SupersedeRequest):
    with http_errors():
        state.services.quotations.get_quotation(req.quotation_id)
    count = state.services.acceptances.supersede_active_acceptances(req.quotation_id)
    return {"quotation_id": req.quotation_id, "superseded": count}


@router.get("/{acceptance_id}")
async def get_acceptance(acceptance_id: str):
    with http_errors():
        acceptance = state.services.acceptances.get_acceptance(acceptance_id)
    return _with_items(acceptance)


@router.put("/{acceptance_id}")
async def update_acceptance(acceptance_id: str, updates: AcceptanceUpdate):
    with http_errors():
        acceptance = state.services.acceptances.update_acceptance(
            acceptance_id, updates.model_dump(exclude_unset=True, exclude_none=True)
        )
    return jsonable_encoder(acceptance)


@router.post("/{acceptance_id}/cancel")
async def cancel_acceptance(acceptance_id: str):
    with http_errors():
        acceptance = state.services.acceptances.cancel_acceptance(acceptance_id)
    return jsonable_encoder(acceptance)


@router.delete("/{acceptance_id}", status_code=204)
async def delete_acceptance(acceptance_id: str):
    with http_errors():
        state.services.acceptances.delete_acceptance(acceptance_id)
    return Response(status_code=204)


# Item acceptances

@router.get("/{acceptance_id}/items")
async def list_item_acceptances(acceptance_id: str):
    with http_errors():
        state.services.acceptances.get_acceptance(acceptance_id)
    return jsonable_encoder(state.services.acceptances.get_item_acceptances(acceptance_id))


@router.post("/{acceptance_id}/items", status_code=201)
async def add_item_acceptance(acceptance_id: str, req: ItemSelection):
    with http_errors():
        row = state.services.acceptances.add_item_acceptance(
            acceptance_id, req.model_dump(exclude_unset=True, exclude_none=True)
        )
    return jsonable_encoder(row)


@router.post("/{acceptance_id}/items/bulk", status_code=201)
async def bulk_add_item_acceptances(acceptance_id: str, items: list[ItemSelection]):
    with http_errors():
        rows = state.services.acceptances.bulk_add_item_acceptances(
            acceptance_id, [item.model_dump(exclude_unset=True, exclude_none=True) for item in items]
        )
    return jsonable_encoder(rows)


# Confirmations

@router.get("/{acceptance_id}/confirmations")
async def list_confirmations(acceptance_id: str):
    with http_errors():
        state.services.acceptances.get_acceptance(acceptance_id)
    return jsonable_encoder(state.services.acceptances.get_confirmations(acceptance_id))


@router.post("/{acceptance_id}/confirmations", status_code=201)
async def add_confirmation(acceptance_id: str, req: ConfirmationCreate):
    with http_errors():
        confirmation = state.services.acceptances.add_confirmation(acceptance_id, **req.model_dump())
    return jsonable_encoder(confirmation)
