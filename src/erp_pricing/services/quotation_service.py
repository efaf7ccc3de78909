"""
Quotation Service - Quotations, their line items, status and revisions.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from ..config.settings import get_settings, Settings
from ..errors import NotFoundError, ValidationError
from ..storage.records import (
    Quotation,
    QuotationItem,
    QUOTATION_STATUSES,
    ACCEPTANCES,
    ITEM_ACCEPTANCES,
)
from ..storage.store import RowStore

logger = logging.getLogger(__name__)

QUOTATIONS = 'quotations'
QUOTATION_ITEMS = 'quotation_items'

ITEM_FIELDS = {'description', 'quantity', 'unit_price', 'item_id', 'cost_price', 'markup', 'notes'}
HEADER_FIELDS = {
    'customer_type', 'valid_until', 'discount_percentage', 'tax_amount',
    'terms', 'notes', 'revision_reason',
}
# Header fields that must always hold a number
NUMERIC_HEADER_FIELDS = {'discount_percentage', 'tax_amount'}

REVISION_SUFFIX = re.compile(r'-R\d+$')

LOCKED_ITEM_MESSAGE = "Quotation item is covered by an active acceptance; create a revision to change it"


def _money(value: float) -> float:
    return round(float(value), 2)


class QuotationService:
    """CRUD and lifecycle for quotations."""

    def __init__(self, store: RowStore, settings: Optional[Settings] = None, pricing=None):
        self.store = store
        self.settings = settings or get_settings()
        # PricingService, only needed for generate_priced_quotation
        self.pricing = pricing

    def _next_quote_number(self) -> str:
        year = datetime.now().year
        existing = {q.quote_number for q in self.store.select(QUOTATIONS)}
        counter = len(existing) + 1
        candidate = f"QT-{year}-{counter:04d}"
        while candidate in existing:
            counter += 1
            candidate = f"QT-{year}-{counter:04d}"
        return candidate

    def create_quotation(
        self,
        customer_id: str,
        items: Optional[list[dict]] = None,
        customer_type: str = 'Retail',
        discount_percentage: float = 0.0,
        tax_amount: float = 0.0,
        notes: Optional[str] = None,
        terms: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Quotation:
        """Create a Draft quotation with optional line items."""
        if not customer_id:
            raise ValidationError("Customer is required")
        if customer_type not in ('Retail', 'Wholesale'):
            raise ValidationError(f"Invalid customer type: {customer_type}")

        quotation = Quotation(
            customer_id=customer_id,
            quote_number=self._next_quote_number(),
            customer_type=customer_type,
            valid_until=datetime.now() + timedelta(days=self.settings.quotation_validity_days),
            discount_percentage=float(discount_percentage or 0),
            tax_amount=float(tax_amount or 0),
            notes=notes,
            terms=terms,
            created_by=created_by,
        )
        self.store.insert(QUOTATIONS, quotation)

        for data in items or []:
            self._insert_item(quotation.id, data)

        logger.info("Created quotation %s for customer %s", quotation.quote_number, customer_id)
        return self.recalculate_totals(quotation.id)

    def get_quotation(self, quotation_id: str) -> Quotation:
        quotation = self.store.get(QUOTATIONS, quotation_id)
        if quotation is None:
            raise NotFoundError("Quotation not found")
        return quotation

    def list_quotations(self, status: Optional[str] = None, customer_id: Optional[str] = None) -> list[Quotation]:
        filters = {}
        if status:
            filters['status'] = status
        if customer_id:
            filters['customer_id'] = customer_id
        return self.store.select(QUOTATIONS, **filters)

    def update_quotation(self, quotation_id: str, updates: dict) -> Quotation:
        """Update header fields; totals are recomputed."""
        self.get_quotation(quotation_id)
        unknown = set(updates) - HEADER_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        for field in NUMERIC_HEADER_FIELDS & set(updates):
            if updates[field] is None:
                raise ValidationError(f"{field} cannot be empty")
        self.store.update(QUOTATIONS, quotation_id, **updates)
        return self.recalculate_totals(quotation_id)

    def update_status(self, quotation_id: str, status: str) -> Quotation:
        if status not in QUOTATION_STATUSES:
            raise ValidationError(f"Invalid quotation status: {status}")
        self.get_quotation(quotation_id)
        logger.info("Quotation %s status → %s", quotation_id, status)
        return self.store.update(QUOTATIONS, quotation_id, status=status)

    def delete_quotation(self, quotation_id: str):
        self.get_quotation(quotation_id)
        if self.store.count(ACCEPTANCES, quotation_id=quotation_id, status='Active'):
            raise ValidationError("Quotation has an active acceptance and cannot be deleted")
        self.store.delete_where(QUOTATION_ITEMS, quotation_id=quotation_id)
        self.store.delete(QUOTATIONS, quotation_id)

    # Line items

    def _insert_item(self, quotation_id: str, data: dict) -> QuotationItem:
        unknown = set(data) - ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Unknown quotation item field(s): {', '.join(sorted(unknown))}")
        if not data.get('description'):
            raise ValidationError("Item description is required")

        quantity = int(data.get('quantity') or 0)
        if quantity < 1:
            raise ValidationError("Item quantity must be at least 1")
        unit_price = float(data.get('unit_price') or 0)
        if unit_price < 0:
            raise ValidationError("Unit price cannot be negative")

        item = QuotationItem(
            quotation_id=quotation_id,
            description=data['description'],
            quantity=quantity,
            unit_price=unit_price,
            line_total=_money(quantity * unit_price),
            item_id=data.get('item_id'),
            cost_price=data.get('cost_price'),
            markup=data.get('markup'),
            notes=data.get('notes'),
        )
        return self.store.insert(QUOTATION_ITEMS, item)

    def get_items(self, quotation_id: str) -> list[QuotationItem]:
        return self.store.select(QUOTATION_ITEMS, quotation_id=quotation_id)

    def get_item(self, item_id: str) -> QuotationItem:
        item = self.store.get(QUOTATION_ITEMS, item_id)
        if item is None:
            raise NotFoundError("Quotation item not found")
        return item

    def add_item(self, quotation_id: str, data: dict) -> QuotationItem:
        self.get_quotation(quotation_id)
        item = self._insert_item(quotation_id, data)
        self.recalculate_totals(quotation_id)
        return item

    def update_item(self, item_id: str, updates: dict) -> QuotationItem:
        item = self.get_item(item_id)
        unknown = set(updates) - ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Unknown quotation item field(s): {', '.join(sorted(unknown))}")

        if self._is_accepted(item):
            raise ValidationError(LOCKED_ITEM_MESSAGE)
        if updates.get('description', item.description) in (None, ''):
            raise ValidationError("Item description is required")
        if updates.get('quantity', item.quantity) is None:
            raise ValidationError("Item quantity must be at least 1")
        if updates.get('unit_price', item.unit_price) is None:
            raise ValidationError("Unit price is required")

        quantity = int(updates.get('quantity', item.quantity))
        unit_price = float(updates.get('unit_price', item.unit_price))
        if quantity < 1:
            raise ValidationError("Item quantity must be at least 1")
        if unit_price < 0:
            raise ValidationError("Unit price cannot be negative")

        changes = dict(updates, quantity=quantity, unit_price=unit_price,
                       line_total=_money(quantity * unit_price))
        updated = self.store.update(QUOTATION_ITEMS, item_id, **changes)
        self.recalculate_totals(item.quotation_id)
        return updated

    def delete_item(self, item_id: str):
        item = self.get_item(item_id)
        if self._is_accepted(item):
            raise ValidationError(LOCKED_ITEM_MESSAGE)
        self.store.delete(QUOTATION_ITEMS, item_id)
        self.recalculate_totals(item.quotation_id)

    def _is_accepted(self, item: QuotationItem) -> bool:
        """True when an active acceptance holds a row for this line."""
        for acceptance in self.store.select(ACCEPTANCES, quotation_id=item.quotation_id, status='Active'):
            if self.store.count(ITEM_ACCEPTANCES, customer_acceptance_id=acceptance.id,
                                quotation_item_id=item.id):
                return True
        return False

    def recalculate_totals(self, quotation_id: str) -> Quotation:
        """subtotal = Σ line totals; total = subtotal − discount + tax."""
        quotation = self.get_quotation(quotation_id)
        subtotal = sum(item.line_total for item in self.get_items(quotation_id))
        discount = subtotal * quotation.discount_percentage / 100
        total = subtotal - discount + quotation.tax_amount
        return self.store.update(
            QUOTATIONS, quotation_id,
            subtotal=_money(subtotal),
            discount_amount=_money(discount),
            total_amount=_money(total),
        )

    # Revisions

    def create_revision(self, quotation_id: str, reason: Optional[str] = None,
                        changes: Optional[dict] = None, created_by: Optional[str] = None) -> Quotation:
        """Copy a quotation (and its items) as a new Draft revision."""
        original = self.get_quotation(quotation_id)
        changes = changes or {}
        unknown = set(changes) - HEADER_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        revision = Quotation(
            customer_id=original.customer_id,
            quote_number=f"{REVISION_SUFFIX.sub('', original.quote_number)}-R{original.revision + 1}",
            customer_type=original.customer_type,
            status='Draft',
            revision=original.revision + 1,
            parent_quotation_id=original.id,
            revision_reason=reason,
            valid_until=datetime.now() + timedelta(days=self.settings.quotation_validity_days),
            discount_percentage=original.discount_percentage,
            tax_amount=original.tax_amount,
            terms=original.terms,
            notes=original.notes,
            created_by=created_by or original.created_by,
        )
        for key, value in changes.items():
            setattr(revision, key, value)
        self.store.insert(QUOTATIONS, revision)

        for item in self.get_items(original.id):
            self._insert_item(revision.id, {
                'description': item.description,
                'quantity': item.quantity,
                'unit_price': item.unit_price,
                'item_id': item.item_id,
                'cost_price': item.cost_price,
                'markup': item.markup,
                'notes': item.notes,
            })

        logger.info("Created revision %d of quotation %s", revision.revision, original.quote_number)
        return self.recalculate_totals(revision.id)

    def get_revisions(self, quotation_id: str) -> list[Quotation]:
        self.get_quotation(quotation_id)
        revisions = self.store.select(QUOTATIONS, parent_quotation_id=quotation_id)
        return sorted(revisions, key=lambda q: q.revision)

    def generate_priced_quotation(self, customer_id: str, lines: list[tuple[str, int]],
                                  notes: Optional[str] = None, created_by: Optional[str] = None) -> Quotation:
        """
        Build a Draft quotation whose unit prices come from the pricing engine.

        Args:
            customer_id: Catalog customer
            lines: (catalog item id, quantity) pairs
        """
        if self.pricing is None:
            raise ValidationError("Pricing is not available for quotation generation")
        if not lines:
            raise ValidationError("At least one item is required")

        customer = self.pricing.catalog.get_customer(customer_id)
        items = []
        for item_id, quantity in lines:
            result = self.pricing.calculate_item_price(item_id, customer_id, quantity)
            catalog_item = self.pricing.catalog.get_item(item_id)
            items.append({
                'item_id': item_id,
                'description': catalog_item.name,
                'quantity': quantity,
                'unit_price': round(result.final_price, 4),
                'cost_price': result.cost_price,
                'markup': round(result.markup_percentage, 2),
            })

        return self.create_quotation(
            customer_id=customer.id,
            items=items,
            customer_type=customer.customer_type,
            notes=notes,
            created_by=created_by,
        )
