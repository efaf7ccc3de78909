"""
Acceptance Service - Records which quotation lines a customer accepted.

A quotation has at most one Active acceptance. Recording a new one first
marks the current Active acceptance Superseded, then stores the new
acceptance and one item acceptance per selected quotation line with the
accepted quantity clamped to [0, quoted quantity].
"""
import logging
from datetime import datetime
from typing import Optional

from ..errors import NotFoundError, ValidationError
from ..storage.records import (
    CustomerAcceptance,
    QuotationItemAcceptance,
    AcceptanceConfirmation,
    QuotationItem,
    ACCEPTANCE_TYPES,
    ACCEPTANCE_STATUSES,
    ITEM_PRIORITIES,
    CONFIRMATION_TYPES,
    ACCEPTANCES,
    ITEM_ACCEPTANCES,
)
from ..storage.store import RowStore
from .quotation_service import QuotationService, QUOTATIONS

logger = logging.getLogger(__name__)

CONFIRMATIONS = 'acceptance_confirmations'

SELECTION_FIELDS = {
    'quotation_item_id', 'is_accepted', 'accepted_quantity', 'rejection_reason',
    'customer_notes', 'delivery_requirement', 'priority',
}
ACCEPTANCE_UPDATE_FIELDS = {
    'accepted_by', 'customer_email', 'customer_notes', 'internal_notes', 'processed_by', 'status',
}


def clamp_quantity(requested, quoted: int) -> int:
    """Clamp a requested quantity into [0, quoted]."""
    if requested is None:
        return quoted
    return max(0, min(int(requested), int(quoted)))


class AcceptanceService:
    """Customer acceptance tracking for quotations."""

    def __init__(self, store: RowStore, quotations: QuotationService):
        self.store = store
        self.quotations = quotations

    def record_acceptance(
        self,
        quotation_id: str,
        acceptance_type: str,
        accepted_by: str,
        items: Optional[list[dict]] = None,
        customer_email: Optional[str] = None,
        customer_notes: Optional[str] = None,
        internal_notes: Optional[str] = None,
    ) -> CustomerAcceptance:
        """
        Record a customer's acceptance of a quotation.

        Args:
            quotation_id: Quotation being accepted
            acceptance_type: "Full" or "Partial"
            accepted_by: Customer contact who accepted
            items: Per-line selections with quotation_item_id, is_accepted,
                accepted_quantity and notes. Optional for Full acceptance,
                where every line is accepted at its quoted quantity.

        Returns:
            The new Active acceptance
        """
        quotation = self.quotations.get_quotation(quotation_id)

        if acceptance_type not in ACCEPTANCE_TYPES:
            raise ValidationError(f"Acceptance type must be one of: {', '.join(ACCEPTANCE_TYPES)}")
        if not accepted_by:
            raise ValidationError("Accepted by is required")

        quotation_items = {item.id: item for item in self.quotations.get_items(quotation.id)}
        if not quotation_items:
            raise ValidationError("Quotation has no items to accept")

        selections = self._collect_selections(acceptance_type, items or [], quotation_items)

        rows = [
            self._build_item_acceptance('', quotation_items[s['quotation_item_id']], s)
            for s in selections
        ]
        if not any(row.is_accepted for row in rows):
            if acceptance_type == 'Partial':
                raise ValidationError("Please select at least one item for partial acceptance")
            raise ValidationError("Full acceptance must accept at least one item")

        self.supersede_active_acceptances(quotation.id)

        acceptance = CustomerAcceptance(
            quotation_id=quotation.id,
            acceptance_type=acceptance_type,
            accepted_by=accepted_by,
            customer_email=customer_email,
            customer_notes=customer_notes,
            internal_notes=internal_notes,
            total_accepted_amount=round(sum(row.accepted_line_total or 0 for row in rows), 2),
        )
        self.store.insert(ACCEPTANCES, acceptance)

        for row in rows:
            row.customer_acceptance_id = acceptance.id
        self.store.bulk_insert(ITEM_ACCEPTANCES, rows)

        self.store.update(QUOTATIONS, quotation.id, status='Accepted')

        logger.info(
            "Recorded %s acceptance %s for quotation %s (%d/%d lines accepted)",
            acceptance_type, acceptance.id, quotation.quote_number,
            sum(1 for row in rows if row.is_accepted), len(quotation_items),
        )
        return self.get_acceptance(acceptance.id)

    def _collect_selections(self, acceptance_type: str, items: list[dict],
                            quotation_items: dict[str, QuotationItem]) -> list[dict]:
        """Validated, de-duplicated selections (first one per line wins)."""
        selections: dict[str, dict] = {}

        if acceptance_type == 'Full':
            for item_id in quotation_items:
                selections[item_id] = {'quotation_item_id': item_id, 'is_accepted': True}

        seen = set()
        for data in items:
            unknown = set(data) - SELECTION_FIELDS
            if unknown:
                raise ValidationError(f"Unknown item acceptance field(s): {', '.join(sorted(unknown))}")

            item_id = data.get('quotation_item_id')
            if item_id not in quotation_items:
                raise ValidationError(f"Quotation item {item_id} does not belong to this quotation")
            if item_id in seen:
                continue
            seen.add(item_id)

            selection = {'is_accepted': True}
            selection.update(data)
            selections[item_id] = selection

        return list(selections.values())

    def _build_item_acceptance(self, acceptance_id: str, quotation_item: QuotationItem,
                               selection: dict) -> QuotationItemAcceptance:
        priority = selection.get('priority') or 'Medium'
        if priority not in ITEM_PRIORITIES:
            raise ValidationError(f"Priority must be one of: {', '.join(ITEM_PRIORITIES)}")

        quoted = quotation_item.quantity
        is_accepted = bool(selection.get('is_accepted', True))
        accepted_quantity = clamp_quantity(selection.get('accepted_quantity'), quoted) if is_accepted else 0

        # A line accepted at zero quantity is not accepted
        if accepted_quantity == 0:
            is_accepted = False

        return QuotationItemAcceptance(
            customer_acceptance_id=acceptance_id,
            quotation_item_id=quotation_item.id,
            is_accepted=is_accepted,
            original_quantity=quoted,
            accepted_quantity=accepted_quantity,
            rejected_quantity=quoted - accepted_quantity,
            rejection_reason=selection.get('rejection_reason'),
            customer_notes=selection.get('customer_notes'),
            accepted_unit_price=quotation_item.unit_price,
            accepted_line_total=round(accepted_quantity * quotation_item.unit_price, 2),
            delivery_requirement=selection.get('delivery_requirement'),
            priority=priority,
        )

    def supersede_active_acceptances(self, quotation_id: str) -> int:
        """Mark every Active acceptance of a quotation as Superseded."""
        active = self.store.select(ACCEPTANCES, quotation_id=quotation_id, status='Active')
        for acceptance in active:
            self.store.update(ACCEPTANCES, acceptance.id, status='Superseded')
        if active:
            logger.info("Superseded %d acceptance(s) for quotation %s", len(active), quotation_id)
        return len(active)

    # Queries

    def get_acceptance(self, acceptance_id: str) -> CustomerAcceptance:
        acceptance = self.store.get(ACCEPTANCES, acceptance_id)
        if acceptance is None:
            raise NotFoundError("Customer acceptance not found")
        return acceptance

    def list_acceptances(self, quotation_id: Optional[str] = None) -> list[CustomerAcceptance]:
        if quotation_id:
            return self.store.select(ACCEPTANCES, quotation_id=quotation_id)
        return self.store.select(ACCEPTANCES)

    def get_active_acceptance(self, quotation_id: str) -> Optional[CustomerAcceptance]:
        active = self.store.select(ACCEPTANCES, quotation_id=quotation_id, status='Active')
        return active[0] if active else None

    def get_item_acceptances(self, acceptance_id: str) -> list[QuotationItemAcceptance]:
        return self.store.select(ITEM_ACCEPTANCES, customer_acceptance_id=acceptance_id)

    def accepted_items(self, quotation_id: str) -> dict[str, QuotationItemAcceptance]:
        """Accepted lines of the quotation's Active acceptance, keyed by quotation item id."""
        active = self.get_active_acceptance(quotation_id)
        if active is None:
            return {}
        return {
            row.quotation_item_id: row
            for row in self.get_item_acceptances(active.id)
            if row.is_accepted
        }

    def accepted_item_ids(self, quotation_id: str) -> set[str]:
        return set(self.accepted_items(quotation_id))

    # Changes

    def update_acceptance(self, acceptance_id: str, updates: dict) -> CustomerAcceptance:
        acceptance = self.get_acceptance(acceptance_id)
        unknown = set(updates) - ACCEPTANCE_UPDATE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        status = updates.get('status')
        if status is not None:
            if status not in ACCEPTANCE_STATUSES:
                raise ValidationError(f"Acceptance status must be one of: {', '.join(ACCEPTANCE_STATUSES)}")
            if status == 'Active' and acceptance.status != 'Active':
                self.supersede_active_acceptances(acceptance.quotation_id)

        return self.store.update(ACCEPTANCES, acceptance_id, **updates)

    def cancel_acceptance(self, acceptance_id: str) -> CustomerAcceptance:
        self.get_acceptance(acceptance_id)
        logger.info("Cancelled acceptance %s", acceptance_id)
        return self.store.update(ACCEPTANCES, acceptance_id, status='Cancelled')

    def delete_acceptance(self, acceptance_id: str):
        self.get_acceptance(acceptance_id)
        self.store.delete_where(ITEM_ACCEPTANCES, customer_acceptance_id=acceptance_id)
        self.store.delete_where(CONFIRMATIONS, customer_acceptance_id=acceptance_id)
        self.store.delete(ACCEPTANCES, acceptance_id)

    def add_item_acceptance(self, acceptance_id: str, data: dict) -> QuotationItemAcceptance:
        created = self.bulk_add_item_acceptances(acceptance_id, [data])
        if not created:
            raise ValidationError("Quotation item already recorded for this acceptance")
        return created[0]

    def bulk_add_item_acceptances(self, acceptance_id: str, items: list[dict]) -> list[QuotationItemAcceptance]:
        """
        Add item acceptances to an existing acceptance.

        Lines already recorded on the acceptance, and repeats within the
        batch, are skipped.
        """
        acceptance = self.get_acceptance(acceptance_id)
        quotation_items = {item.id: item for item in self.quotations.get_items(acceptance.quotation_id)}
        existing = {row.quotation_item_id for row in self.get_item_acceptances(acceptance_id)}

        rows = []
        for selection in self._collect_selections('Partial', items, quotation_items):
            if selection['quotation_item_id'] in existing:
                continue
            rows.append(self._build_item_acceptance(
                acceptance_id, quotation_items[selection['quotation_item_id']], selection
            ))

        created = self.store.bulk_insert(ITEM_ACCEPTANCES, rows)

        total = sum(row.accepted_line_total or 0 for row in self.get_item_acceptances(acceptance_id))
        self.store.update(ACCEPTANCES, acceptance_id, total_accepted_amount=round(total, 2))
        return created

    # Confirmations

    def add_confirmation(
        self,
        acceptance_id: str,
        confirmation_type: str,
        confirmation_method: str,
        confirmed_by: str,
        confirmed_at: Optional[datetime] = None,
        confirmation_reference: Optional[str] = None,
        confirmation_details: Optional[str] = None,
    ) -> AcceptanceConfirmation:
        self.get_acceptance(acceptance_id)
        if confirmation_type not in CONFIRMATION_TYPES:
            raise ValidationError(f"Confirmation type must be one of: {', '.join(CONFIRMATION_TYPES)}")
        if not confirmation_method or not confirmed_by:
            raise ValidationError("Confirmation method and confirmed by are required")

        confirmation = AcceptanceConfirmation(
            customer_acceptance_id=acceptance_id,
            confirmation_type=confirmation_type,
            confirmation_method=confirmation_method,
            confirmed_by=confirmed_by,
            confirmed_at=confirmed_at or datetime.now(),
            confirmation_reference=confirmation_reference,
            confirmation_details=confirmation_details,
        )
        return self.store.insert(CONFIRMATIONS, confirmation)

    def get_confirmations(self, acceptance_id: str) -> list[AcceptanceConfirmation]:
        return self.store.select(CONFIRMATIONS, customer_acceptance_id=acceptance_id)
