"""
Quotations API - FastAPI router for quotations, line items and revisions.
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from . import state
from .state import http_errors

router = APIRouter(prefix="/api/quotations", tags=["quotations"])


class QuotationItemCreate(BaseModel):
    description: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    item_id: Optional[str] = None
    cost_price: Optional[float] = None
    markup: Optional[float] = None
    notes: Optional[str] = None


class QuotationItemUpdate(BaseModel):
    description: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    unit_price: Optional[float] = Field(default=None, ge=0)
    cost_price: Optional[float] = None
    markup: Optional[float] = None
    notes: Optional[str] = None


class QuotationCreate(BaseModel):
    customer_id: str
    customer_type: Literal['Retail', 'Wholesale'] = 'Retail'
    items: list[QuotationItemCreate] = []
    discount_percentage: float = 0.0
    tax_amount: float = 0.0
    notes: Optional[str] = None
    terms: Optional[str] = None
    created_by: Optional[str] = None


class QuotationUpdate(BaseModel):
    customer_type: Optional[Literal['Retail', 'Wholesale']] = None
    valid_until: Optional[datetime] = None
    discount_percentage: Optional[float] = None
    tax_amount: Optional[float] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str


class RevisionRequest(BaseModel):
    reason: Optional[str] = None
    changes: Optional[QuotationUpdate] = None
    created_by: Optional[str] = None


class GenerateLine(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class GenerateRequest(BaseModel):
    customer_id: str
    lines: list[GenerateLine]
    notes: Optional[str] = None
    created_by: Optional[str] = None


def _with_items(quotation) -> dict:
    payload = jsonable_encoder(quotation)
    payload["items"] = jsonable_encoder(state.services.quotations.get_items(quotation.id))
    return payload


@router.get("")
async def list_quotations(status: Optional[str] = None, customer_id: Optional[str] = None):
    return jsonable_encoder(state.services.quotations.list_quotations(status, customer_id))


@router.post("", status_code=201)
async def create_quotation(req: QuotationCreate):
    with http_errors():
        quotation = state.services.quotations.create_quotation(
            customer_id=req.customer_id,
            items=[item.model_dump() for item in req.items],
            customer_type=req.customer_type,
            discount_percentage=req.discount_percentage,
            tax_amount=req.tax_amount,
            notes=req.notes,
            terms=req.terms,
            created_by=req.created_by,
        )
    return _with_items(quotation)


@router.post("/generate", status_code=201)
async def generate_quotation(req: GenerateRequest):
    """Create a quotation priced by the pricing engine."""
    with http_errors():
        quotation = state.services.quotations.generate_priced_quotation(
            req.customer_id,
            [(line.item_id, line.quantity) for line in req.lines],
            notes=req.notes,
            created_by=req.created_by,
        )
    return _with_items(quotation)


@router.get("/{quotation_id}")
async def get_quotation(quotation_id: str):
    with http_errors():
        quotation = state.services.quotations.get_quotation(quotation_id)
    return _with_items(quotation)


@router.put("/{quotation_id}")
async def update_quotation(quotation_id: str, updates: QuotationUpdate):
    with http_errors():
        quotation = state.services.quotations.update_quotation(
            quotation_id, updates.model_dump(exclude_unset=True, exclude_none=True)
        )
    return _with_items(quotation)


@router.put("/{quotation_id}/status")
async def update_status(quotation_id: str, req: StatusUpdate):
    with http_errors():
        quotation = state.services.quotations.update_status(quotation_id, req.status)
    return jsonable_encoder(quotation)


@router.delete("/{quotation_id}", status_code=204)
async def delete_quotation(quotation_id: str):
    with http_errors():
        state.services.quotations.delete_quotation(quotation_id)
    return Response(status_code=204)


# Line items

@router.get("/{quotation_id}/items")
async def list_items(quotation_id: str):
    with http_errors():
        state.services.quotations.get_quotation(quotation_id)
    return jsonable_encoder(state.services.quotations.get_items(quotation_id))


@router.post("/{quotation_id}/items", status_code=201)
async def add_item(quotation_id: str, req: QuotationItemCreate):
    with http_errors():
        item = state.services.quotations.add_item(quotation_id, req.model_dump())
    return jsonable_encoder(item)


@router.put("/items/{item_id}")
async def update_item(item_id: str, updates: QuotationItemUpdate):
    with http_errors():
        item = state.services.quotations.update_item(
            item_id, updates.model_dump(exclude_unset=True, exclude_none=True)
        )
    return jsonable_encoder(item)


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: str):
    with http_errors():
        state.services.quotations.delete_item(item_id)
    return Response(status_code=204)


# Revisions

@router.post("/{quotation_id}/revisions", status_code=201)
async def create_revision(quotation_id: str, req: RevisionRequest):
    changes = req.changes.model_dump(exclude_unset=True, exclude_none=True) if req.changes else None
    with http_errors():
        revision = state.services.quotations.create_revision(
            quotation_id, reason=req.reason, changes=changes, created_by=req.created_by
        )
    return _with_items(revision)


@router.get("/{quotation_id}/revisions")
async def list_revisions(quotation_id: str):
    with http_errors():
        revisions = state.services.quotations.get_revisions(quotation_id)
    return jsonable_encoder(revisions)
