"""
Purchase Order Service - Customer POs against accepted quotations.

A PO can only be raised for a quotation the customer accepted. Its line
items are reconciled against the quotation's Active acceptance: every line
that names a quotation item must point at an accepted line, stay within
the accepted quantity and carry the accepted unit price.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..config.settings import get_settings, Settings
from ..errors import NotFoundError, ValidationError
from ..storage.records import PurchaseOrder, PoLineItem, PO_MANUAL_STATUSES
from ..storage.store import RowStore
from .acceptance_service import AcceptanceService
from .quotation_service import QuotationService

logger = logging.getLogger(__name__)

PURCHASE_ORDERS = 'purchase_orders'
PO_LINE_ITEMS = 'po_line_items'

PRICE_TOLERANCE = 0.01

UPLOAD_REQUIRED_FIELDS = ('quotation_id', 'document_path', 'document_name', 'document_type')
PO_FIELDS = {
    'quotation_id', 'po_number', 'po_date', 'customer_reference', 'document_path',
    'document_name', 'document_type', 'document_size', 'uploaded_by', 'total_po_amount',
    'currency', 'payment_terms', 'delivery_terms', 'special_instructions',
}
PO_UPDATE_FIELDS = PO_FIELDS - {'quotation_id'} | {'validation_notes'}
LINE_FIELDS = {'quotation_item_id', 'item_description', 'po_quantity', 'po_unit_price', 'po_line_total'}


@dataclass
class LineCheck:
    """Outcome of matching one PO line."""
    line_item_id: str
    quotation_item_id: Optional[str]
    match_status: str
    note: Optional[str] = None


@dataclass
class ReconciliationReport:
    purchase_order_id: str
    valid: bool
    issues: list[str] = field(default_factory=list)
    lines: list[LineCheck] = field(default_factory=list)


class PurchaseOrderService:
    """PO intake, line items and reconciliation."""

    def __init__(self, store: RowStore, quotations: QuotationService,
                 acceptances: AcceptanceService, settings: Optional[Settings] = None):
        self.store = store
        self.quotations = quotations
        self.acceptances = acceptances
        self.settings = settings or get_settings()

    def _next_po_number(self) -> str:
        year = datetime.now().year
        existing = {po.po_number for po in self.store.select(PURCHASE_ORDERS)}
        counter = len(existing) + 1
        candidate = f"PO-{year}-{counter:04d}"
        while candidate in existing:
            counter += 1
            candidate = f"PO-{year}-{counter:04d}"
        return candidate

    def create_purchase_order(self, data: dict) -> PurchaseOrder:
        """
        Create a PO for an Accepted quotation.

        The quotation's Active acceptance must hold at least one accepted
        line; the PO is linked to that acceptance.
        """
        unknown = set(data) - PO_FIELDS
        if unknown:
            raise ValidationError(f"Unknown purchase order field(s): {', '.join(sorted(unknown))}")

        quotation = self.quotations.get_quotation(data.get('quotation_id'))
        if quotation.status != 'Accepted':
            raise ValidationError("Quotation must be Accepted before uploading PO")

        if not self.acceptances.accepted_item_ids(quotation.id):
            raise ValidationError("No accepted quotation items found; cannot create Purchase Order")

        missing = [name for name in ('document_path', 'document_name', 'document_type', 'uploaded_by')
                   if not data.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        return self._insert(quotation.id, data)

    def upload_customer_po(self, payload: dict) -> PurchaseOrder:
        """
        Record a customer PO document against a quotation.

        The uploader falls back to the configured system user. Upload is
        allowed when the quotation has accepted lines or is itself Accepted.
        """
        missing = [name for name in UPLOAD_REQUIRED_FIELDS if not payload.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        unknown = set(payload) - PO_FIELDS
        if unknown:
            raise ValidationError(f"Unknown purchase order field(s): {', '.join(sorted(unknown))}")

        quotation = self.quotations.get_quotation(payload['quotation_id'])
        if not self.acceptances.accepted_item_ids(quotation.id) and quotation.status != 'Accepted':
            raise ValidationError("No accepted quotation items found; cannot upload PO")

        data = {key: value for key, value in payload.items() if value not in (None, '')}
        data.setdefault('uploaded_by', self.settings.system_user_id)
        data.pop('po_number', None)
        return self._insert(quotation.id, data)

    def _insert(self, quotation_id: str, data: dict) -> PurchaseOrder:
        active = self.acceptances.get_active_acceptance(quotation_id)
        order = PurchaseOrder(
            quotation_id=quotation_id,
            customer_acceptance_id=active.id if active else None,
            po_number=data.get('po_number') or self._next_po_number(),
            po_date=data.get('po_date') or datetime.now(),
            customer_reference=data.get('customer_reference'),
            document_path=data['document_path'],
            document_name=data['document_name'],
            document_type=data['document_type'],
            document_size=data.get('document_size'),
            uploaded_by=data['uploaded_by'],
            total_po_amount=data.get('total_po_amount'),
            currency=data.get('currency') or self.settings.base_currency,
            payment_terms=data.get('payment_terms'),
            delivery_terms=data.get('delivery_terms'),
            special_instructions=data.get('special_instructions'),
        )
        self.store.insert(PURCHASE_ORDERS, order)
        logger.info("Created purchase order %s for quotation %s", order.po_number, quotation_id)
        return order

    # Queries and changes

    def list_purchase_orders(self, quotation_id: Optional[str] = None,
                             limit: Optional[int] = None, offset: int = 0) -> list[PurchaseOrder]:
        orders = self.store.select(PURCHASE_ORDERS, quotation_id=quotation_id) if quotation_id \
            else self.store.select(PURCHASE_ORDERS)
        orders.sort(key=lambda po: po.created_at, reverse=True)
        end = offset + limit if limit is not None else None
        return orders[offset:end]

    def get_purchase_order(self, purchase_order_id: str) -> PurchaseOrder:
        order = self.store.get(PURCHASE_ORDERS, purchase_order_id)
        if order is None:
            raise NotFoundError("Purchase order not found")
        return order

    def update_purchase_order(self, purchase_order_id: str, updates: dict) -> PurchaseOrder:
        self.get_purchase_order(purchase_order_id)
        unknown = set(updates) - PO_UPDATE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        return self.store.update(PURCHASE_ORDERS, purchase_order_id, **updates)

    def delete_purchase_order(self, purchase_order_id: str):
        self.get_purchase_order(purchase_order_id)
        self.store.delete_where(PO_LINE_ITEMS, purchase_order_id=purchase_order_id)
        self.store.delete(PURCHASE_ORDERS, purchase_order_id)

    def validate_purchase_order(self, purchase_order_id: str, status: str, validated_by: str,
                                notes: Optional[str] = None) -> PurchaseOrder:
        """Manual validation decision."""
        self.get_purchase_order(purchase_order_id)
        if status not in PO_MANUAL_STATUSES:
            raise ValidationError(f"Validation status must be one of: {', '.join(PO_MANUAL_STATUSES)}")
        if not validated_by:
            raise ValidationError("Validator ID is required")

        logger.info("Purchase order %s marked %s by %s", purchase_order_id, status, validated_by)
        return self.store.update(
            PURCHASE_ORDERS, purchase_order_id,
            validation_status=status,
            validation_notes=notes,
            validated_by=validated_by,
            validated_at=datetime.now(),
        )

    # Line items

    def _build_line(self, purchase_order_id: str, data: dict) -> PoLineItem:
        unknown = set(data) - LINE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown PO line item field(s): {', '.join(sorted(unknown))}")
        if not data.get('item_description'):
            raise ValidationError("Item description is required")

        quantity = int(data.get('po_quantity') or 0)
        if quantity < 1:
            raise ValidationError("PO quantity must be at least 1")

        unit_price = data.get('po_unit_price')
        line_total = data.get('po_line_total')
        if line_total is None and unit_price is not None:
            line_total = round(quantity * float(unit_price), 2)

        return PoLineItem(
            purchase_order_id=purchase_order_id,
            quotation_item_id=data.get('quotation_item_id') or None,
            item_description=data['item_description'],
            po_quantity=quantity,
            po_unit_price=float(unit_price) if unit_price is not None else None,
            po_line_total=line_total,
        )

    def get_line_items(self, purchase_order_id: str) -> list[PoLineItem]:
        return self.store.select(PO_LINE_ITEMS, purchase_order_id=purchase_order_id)

    def add_line_item(self, purchase_order_id: str, data: dict) -> PoLineItem:
        self.get_purchase_order(purchase_order_id)
        return self.store.insert(PO_LINE_ITEMS, self._build_line(purchase_order_id, data))

    def bulk_add_line_items(self, purchase_order_id: str, items: list[dict]) -> list[PoLineItem]:
        self.get_purchase_order(purchase_order_id)
        # Build everything first so a bad line adds nothing
        lines = [self._build_line(purchase_order_id, data) for data in items]
        return self.store.bulk_insert(PO_LINE_ITEMS, lines)

    def update_line_item(self, line_item_id: str, updates: dict) -> PoLineItem:
        line = self.store.get(PO_LINE_ITEMS, line_item_id)
        if line is None:
            raise NotFoundError("PO line item not found")
        unknown = set(updates) - LINE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown PO line item field(s): {', '.join(sorted(unknown))}")

        merged = {
            'quotation_item_id': line.quotation_item_id,
            'item_description': line.item_description,
            'po_quantity': line.po_quantity,
            'po_unit_price': line.po_unit_price,
        }
        merged.update(updates)
        if 'po_line_total' not in updates:
            merged['po_line_total'] = None
        rebuilt = self._build_line(line.purchase_order_id, merged)

        return self.store.update(
            PO_LINE_ITEMS, line_item_id,
            quotation_item_id=rebuilt.quotation_item_id,
            item_description=rebuilt.item_description,
            po_quantity=rebuilt.po_quantity,
            po_unit_price=rebuilt.po_unit_price,
            po_line_total=rebuilt.po_line_total,
            match_status='Not Validated',
            discrepancy_notes=None,
        )

    # Reconciliation

    def reconcile(self, purchase_order_id: str) -> ReconciliationReport:
        """
        Match PO lines against the quotation's accepted lines.

        Line match statuses are saved; the PO becomes Valid when nothing is
        out of line and Requires Review otherwise.
        """
        order = self.get_purchase_order(purchase_order_id)
        accepted = self.acceptances.accepted_items(order.quotation_id)
        report = ReconciliationReport(purchase_order_id=order.id, valid=True)
        now = datetime.now()

        for line in self.get_line_items(order.id):
            check = self._check_line(line, accepted)
            report.lines.append(check)
            if check.note:
                report.issues.append(f"{line.item_description}: {check.note}")

            self.store.update(
                PO_LINE_ITEMS, line.id,
                match_status=check.match_status,
                discrepancy_notes=check.note,
                validated_at=now,
            )

        report.valid = not report.issues
        status = 'Valid' if report.valid else 'Requires Review'
        self.store.update(
            PURCHASE_ORDERS, order.id,
            validation_status=status,
            validation_notes='; '.join(report.issues) or None,
            validated_at=now,
        )

        logger.info("Reconciled purchase order %s: %s (%d issue(s))",
                    order.po_number, status, len(report.issues))
        return report

    def _check_line(self, line: PoLineItem, accepted: dict) -> LineCheck:
        if not line.quotation_item_id:
            return LineCheck(line.id, None, 'Not Validated')

        acceptance = accepted.get(line.quotation_item_id)
        if acceptance is None:
            return LineCheck(line.id, line.quotation_item_id, 'Item Not Found',
                             f"quotation item {line.quotation_item_id} was not accepted")

        if line.po_quantity > acceptance.accepted_quantity:
            return LineCheck(line.id, line.quotation_item_id, 'Quantity Mismatch',
                             f"PO quantity {line.po_quantity} exceeds accepted quantity "
                             f"{acceptance.accepted_quantity}")

        if (line.po_unit_price is not None and acceptance.accepted_unit_price is not None
                and abs(line.po_unit_price - acceptance.accepted_unit_price) > PRICE_TOLERANCE):
            return LineCheck(line.id, line.quotation_item_id, 'Price Mismatch',
                             f"PO unit price {line.po_unit_price:.2f} differs from accepted "
                             f"{acceptance.accepted_unit_price:.2f}")

        return LineCheck(line.id, line.quotation_item_id, 'Matched')
