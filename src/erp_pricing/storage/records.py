"""
Row types for the quotation → acceptance → purchase order workflow.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def new_id() -> str:
    return str(uuid.uuid4())


QUOTATION_STATUSES = ('Draft', 'Sent', 'Accepted', 'Rejected', 'Expired')
ACCEPTANCE_TYPES = ('Full', 'Partial')
ACCEPTANCE_STATUSES = ('Active', 'Superseded', 'Cancelled')
ITEM_PRIORITIES = ('Low', 'Medium', 'High', 'Urgent')
CONFIRMATION_TYPES = ('Email', 'Phone', 'Portal', 'Document', 'Meeting')
PO_VALIDATION_STATUSES = ('Pending', 'Valid', 'Invalid', 'Requires Review')
PO_MANUAL_STATUSES = ('Valid', 'Invalid', 'Requires Review')
LINE_MATCH_STATUSES = ('Matched', 'Quantity Mismatch', 'Price Mismatch', 'Item Not Found', 'Not Validated')

# Acceptance tables, read by both the quotation and acceptance services
ACCEPTANCES = 'customer_acceptances'
ITEM_ACCEPTANCES = 'quotation_item_acceptances'


@dataclass
class Quotation:
    customer_id: str
    quote_number: str
    customer_type: str = 'Retail'
    status: str = 'Draft'
    revision: int = 1
    parent_quotation_id: Optional[str] = None
    revision_reason: Optional[str] = None
    quote_date: datetime = field(default_factory=datetime.now)
    valid_until: Optional[datetime] = None
    subtotal: float = 0.0
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    terms: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class QuotationItem:
    quotation_id: str
    description: str
    quantity: int
    unit_price: float
    line_total: float = 0.0
    item_id: Optional[str] = None
    cost_price: Optional[float] = None
    markup: Optional[float] = None
    notes: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class CustomerAcceptance:
    quotation_id: str
    acceptance_type: str  # "Full" or "Partial"
    accepted_by: str
    customer_email: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    total_accepted_amount: float = 0.0
    status: str = 'Active'
    processed_by: Optional[str] = None
    accepted_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class QuotationItemAcceptance:
    customer_acceptance_id: str
    quotation_item_id: str
    is_accepted: bool
    original_quantity: int
    accepted_quantity: int = 0
    rejected_quantity: int = 0
    rejection_reason: Optional[str] = None
    customer_notes: Optional[str] = None
    accepted_unit_price: Optional[float] = None
    accepted_line_total: Optional[float] = None
    delivery_requirement: Optional[str] = None
    priority: str = 'Medium'
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class AcceptanceConfirmation:
    customer_acceptance_id: str
    confirmation_type: str
    confirmation_method: str
    confirmed_by: str
    confirmed_at: datetime = field(default_factory=datetime.now)
    confirmation_reference: Optional[str] = None
    confirmation_details: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class PurchaseOrder:
    quotation_id: str
    po_number: str
    po_date: datetime
    document_path: str
    document_name: str
    document_type: str
    uploaded_by: str
    customer_acceptance_id: Optional[str] = None
    customer_reference: Optional[str] = None
    document_size: Optional[int] = None
    validation_status: str = 'Pending'
    validation_notes: Optional[str] = None
    validated_by: Optional[str] = None
    validated_at: Optional[datetime] = None
    total_po_amount: Optional[float] = None
    currency: str = 'BHD'
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    special_instructions: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class PoLineItem:
    purchase_order_id: str
    item_description: str
    po_quantity: int
    quotation_item_id: Optional[str] = None
    po_unit_price: Optional[float] = None
    po_line_total: Optional[float] = None
    match_status: str = 'Not Validated'
    discrepancy_notes: Optional[str] = None
    validated_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class PricingCalculation:
    """History row written for every priced item."""
    item_id: str
    method: str
    quantity: int
    cost_price: float
    base_price: float
    final_price: float
    margin_percentage: float
    markup_percentage: float
    customer_id: Optional[str] = None
    currency: str = 'BHD'
    volume_discount: float = 0.0
    competitor_average: Optional[float] = None
    factors: list[str] = field(default_factory=list)
    calculated_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_id)
