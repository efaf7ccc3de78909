"""
Purchase Orders API - FastAPI routers for POs, PO lines and customer PO upload.
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from . import state
from .state import http_errors

router = APIRouter(prefix="/api/purchase-orders", tags=["purchase-orders"])
upload_router = APIRouter(prefix="/api", tags=["purchase-orders"])


class PurchaseOrderCreate(BaseModel):
    quotation_id: str
    document_path: str
    document_name: str
    document_type: str
    uploaded_by: str
    po_number: Optional[str] = None
    po_date: Optional[datetime] = None
    customer_reference: Optional[str] = None
    document_size: Optional[int] = None
    total_po_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    special_instructions: Optional[str] = None


class PurchaseOrderUpdate(BaseModel):
    po_number: Optional[str] = None
    po_date: Optional[datetime] = None
    customer_reference: Optional[str] = None
    document_path: Optional[str] = None
    document_name: Optional[str] = None
    document_type: Optional[str] = None
    document_size: Optional[int] = None
    total_po_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    special_instructions: Optional[str] = None
    validation_notes: Optional[str] = None


class CustomerPoUpload(BaseModel):
    """Fields are checked by the service so missing ones are reported together."""
    quotation_id: Optional[str] = None
    document_path: Optional[str] = None
    document_name: Optional[str] = None
    document_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    po_date: Optional[datetime] = None
    customer_reference: Optional[str] = None
    total_po_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    special_instructions: Optional[str] = None


class ValidationRequest(BaseModel):
    status: Literal['Valid', 'Invalid', 'Requires Review']
    validated_by: str = Field(min_length=1)
    notes: Optional[str] = None


class LineItemCreate(BaseModel):
    item_description: str
    po_quantity: int = Field(ge=1)
    quotation_item_id: Optional[str] = None
    po_unit_price: Optional[float] = None
    po_line_total: Optional[float] = None


class LineItemUpdate(BaseModel):
    item_description: Optional[str] = None
    po_quantity: Optional[int] = Field(default=None, ge=1)
    quotation_item_id: Optional[str] = None
    po_unit_price: Optional[float] = None
    po_line_total: Optional[float] = None


@router.get("")
async def list_purchase_orders(quotation_id: Optional[str] = None, limit: int = 50, offset: int = 0):
    orders = state.services.purchase_orders.list_purchase_orders(quotation_id, limit, offset)
    return jsonable_encoder(orders)


@router.post("", status_code=201)
async def create_purchase_order(req: PurchaseOrderCreate):
    with http_errors():
        order = state.services.purchase_orders.create_purchase_order(req.model_dump(exclude_none=True))
    return jsonable_encoder(order)


@router.get("/{purchase_order_id}")
async def get_purchase_order(purchase_order_id: str):
    with http_errors():
        order = state.services.purchase_orders.get_purchase_order(purchase_order_id)
    return jsonable_encoder(order)


@router.put("/{purchase_order_id}")
async def update_purchase_order(purchase_order_id: str, updates: PurchaseOrderUpdate):
    with http_errors():
        order = state.services.purchase_orders.update_purchase_order(
            purchase_order_id, updates.model_dump(exclude_unset=True, exclude_none=True)
        )
    return jsonable_encoder(order)


@router.delete("/{purchase_order_id}", status_code=204)
async def delete_purchase_order(purchase_order_id: str):
    with http_errors():
        state.services.purchase_orders.delete_purchase_order(purchase_order_id)
    return Response(status_code=204)


@router.post("/{purchase_order_id}/validate")
async def validate_purchase_order(purchase_order_id: str, req: ValidationRequest):
    """Record a manual validation decision."""
    with http_errors():
        order = state.services.purchase_orders.validate_purchase_order(
            purchase_order_id, req.status, req.validated_by, req.notes
        )
    return jsonable_encoder(order)


@router.post("/{purchase_order_id}/reconcile")
async def reconcile_purchase_order(purchase_order_id: str):
    """Match PO lines against the accepted quotation lines."""
    with http_errors():
        report = state.services.purchase_orders.reconcile(purchase_order_id)
    return jsonable_encoder(report)


# Line items

@router.get("/{purchase_order_id}/line-items")
async def list_line_items(purchase_order_id: str):
    with http_errors():
        state.services.purchase_orders.get_purchase_order(purchase_order_id)
    return jsonable_encoder(state.services.purchase_orders.get_line_items(purchase_order_id))


@router.post("/{purchase_order_id}/line-items", status_code=201)
async def add_line_item(purchase_order_id: str, req: LineItemCreate):
    with http_errors():
        line = state.services.purchase_orders.add_line_item(purchase_order_id, req.model_dump(exclude_none=True))
    return jsonable_encoder(line)


@router.post("/{purchase_order_id}/line-items/bulk", status_code=201)
async def bulk_add_line_items(purchase_order_id: str, items: list[LineItemCreate]):
    with http_errors():
        lines = state.services.purchase_orders.bulk_add_line_items(
            purchase_order_id, [item.model_dump(exclude_none=True) for item in items]
        )
    return jsonable_encoder(lines)


@router.put("/line-items/{line_item_id}")
async def update_line_item(line_item_id: str, updates: LineItemUpdate):
    with http_errors():
        line = state.services.purchase_orders.update_line_item(
            line_item_id, updates.model_dump(exclude_unset=True, exclude_none=True)
        )
    return jsonable_encoder(line)


@upload_router.post("/customer-po-upload", status_code=201)
async def upload_customer_po(req: CustomerPoUpload):
    with http_errors():
        order = state.services.purchase_orders.upload_customer_po(req.model_dump(exclude_none=True))
    return jsonable_encoder(order)
