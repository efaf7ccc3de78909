import re

import pytest

from erp_pricing.errors import NotFoundError, ValidationError


def test_create_quotation_totals(quotation_service):
    quotation = quotation_service.create_quotation(
        customer_id="RETAIL",
        items=[
            {"description": "Widget", "quantity": 2, "unit_price": 50.0},
            {"description": "Gadget", "quantity": 1, "unit_price": 100.0},
        ],
        discount_percentage=10,
        tax_amount=5,
    )

    assert re.fullmatch(r"QT-\d{4}-\d{4}", quotation.quote_number)
    assert quotation.status == "Draft"
    assert quotation.revision == 1
    assert quotation.subtotal == pytest.approx(200.0)
    assert quotation.discount_amount == pytest.approx(20.0)
    assert quotation.total_amount == pytest.approx(185.0)
    assert quotation.valid_until is not None


def test_quote_numbers_stay_unique_after_delete(quotation_service):
    first = quotation_service.create_quotation(customer_id="RETAIL")
    second = quotation_service.create_quotation(customer_id="RETAIL")
    quotation_service.delete_quotation(first.id)
    third = quotation_service.create_quotation(customer_id="RETAIL")

    assert third.quote_number != second.quote_number


def test_create_validation(quotation_service):
    with pytest.raises(ValidationError):
        quotation_service.create_quotation(customer_id="")
    with pytest.raises(ValidationError, match="customer type"):
        quotation_service.create_quotation(customer_id="RETAIL", customer_type="Reseller")
    with pytest.raises(ValidationError, match="at least 1"):
        quotation_service.create_quotation(customer_id="RETAIL",
                                           items=[{"description": "X", "quantity": 0, "unit_price": 1}])


def test_line_item_changes_recalculate_totals(quotation, quotation_service, quotation_lines):
    pump, valve = quotation_lines
    assert quotation.subtotal == pytest.approx(600.0)

    updated = quotation_service.update_item(pump.id, {"quantity": 4})
    assert updated.line_total == pytest.approx(200.0)
    assert quotation_service.get_quotation(quotation.id).subtotal == pytest.approx(300.0)

    quotation_service.add_item(quotation.id, {"description": "Gauge", "quantity": 1, "unit_price": 25})
    assert quotation_service.get_quotation(quotation.id).subtotal == pytest.approx(325.0)

    quotation_service.delete_item(valve.id)
    assert quotation_service.get_quotation(quotation.id).subtotal == pytest.approx(225.0)


def test_update_header_and_status(quotation, quotation_service):
    updated = quotation_service.update_quotation(quotation.id, {"tax_amount": 10})
    assert updated.total_amount == pytest.approx(610.0)

    assert quotation_service.update_status(quotation.id, "Sent").status == "Sent"
    with pytest.raises(ValidationError, match="Invalid quotation status"):
        quotation_service.update_status(quotation.id, "Lost")
    with pytest.raises(ValidationError, match="Cannot update"):
        quotation_service.update_quotation(quotation.id, {"status": "Accepted"})


def test_filters(quotation, quotation_service):
    quotation_service.create_quotation(customer_id="RETAIL")
    assert len(quotation_service.list_quotations()) == 2
    assert [q.id for q in quotation_service.list_quotations(customer_id="WHOLESALE")] == [quotation.id]
    assert len(quotation_service.list_quotations(status="Accepted")) == 0


def test_missing_quotation(quotation_service):
    with pytest.raises(NotFoundError, match="Quotation not found"):
        quotation_service.get_quotation("missing")


def test_delete_removes_items(quotation, quotation_service):
    quotation_service.delete_quotation(quotation.id)
    assert quotation_service.get_items(quotation.id) == []


def test_revision_copies_quotation(quotation, quotation_service):
    quotation_service.update_status(quotation.id, "Sent")
    revision = quotation_service.create_revision(quotation.id, reason="Customer asked for discount",
                                                 changes={"discount_percentage": 5})

    assert revision.quote_number == f"{quotation.quote_number}-R2"
    assert revision.revision == 2
    assert revision.status == "Draft"
    assert revision.parent_quotation_id == quotation.id
    assert revision.subtotal == pytest.approx(600.0)
    assert revision.total_amount == pytest.approx(570.0)
    assert len(quotation_service.get_items(revision.id)) == 2

    assert [r.id for r in quotation_service.get_revisions(quotation.id)] == [revision.id]


def test_generate_priced_quotation(quotation_service):
    quotation = quotation_service.generate_priced_quotation("WHOLESALE", [("PUMP", 2), ("VALVE", 1)])
    pump, valve = quotation_service.get_items(quotation.id)

    assert quotation.customer_type == "Wholesale"
    assert pump.unit_price == pytest.approx(166.6667)
    assert pump.line_total == pytest.approx(333.33)
    assert pump.cost_price == 100.0
    assert valve.unit_price == pytest.approx(33.3333)
    assert quotation.subtotal == pytest.approx(366.66)


def test_generate_requires_lines(quotation_service):
    with pytest.raises(ValidationError):
        quotation_service.generate_priced_quotation("WHOLESALE", [])


def test_accepted_lines_are_locked(quotation, quotation_service, acceptance_service, quotation_lines):
    pump, valve = quotation_lines
    acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed", items=[{"quotation_item_id": pump.id, "accepted_quantity": 8}],
    )

    with pytest.raises(ValidationError, match="active acceptance"):
        quotation_service.update_item(pump.id, {"quantity": 2})
    with pytest.raises(ValidationError, match="active acceptance"):
        quotation_service.delete_item(pump.id)
    with pytest.raises(ValidationError, match="active acceptance"):
        quotation_service.delete_quotation(quotation.id)

    assert quotation_service.get_item(pump.id).quantity == 10
    (row,) = acceptance_service.get_item_acceptances(acceptance_service.get_active_acceptance(quotation.id).id)
    assert row.accepted_quantity <= quotation_service.get_item(row.quotation_item_id).quantity

    # Lines outside the acceptance stay editable
    assert quotation_service.update_item(valve.id, {"quantity": 6}).quantity == 6


def test_cancelled_acceptance_unlocks_lines(quotation, quotation_service, acceptance_service, quotation_lines):
    pump, _ = quotation_lines
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    acceptance_service.cancel_acceptance(acceptance.id)

    assert quotation_service.update_item(pump.id, {"quantity": 2}).line_total == pytest.approx(100.0)


def test_empty_values_are_rejected(quotation, quotation_service, quotation_lines):
    pump, _ = quotation_lines
    with pytest.raises(ValidationError, match="at least 1"):
        quotation_service.update_item(pump.id, {"quantity": None})
    with pytest.raises(ValidationError, match="Unit price is required"):
        quotation_service.update_item(pump.id, {"unit_price": None})
    with pytest.raises(ValidationError, match="cannot be negative"):
        quotation_service.update_item(pump.id, {"unit_price": -1})
    with pytest.raises(ValidationError, match="discount_percentage cannot be empty"):
        quotation_service.update_quotation(quotation.id, {"discount_percentage": None})

    assert quotation_service.get_item(pump.id).line_total == pytest.approx(500.0)


def test_revision_of_a_revision(quotation, quotation_service):
    second = quotation_service.create_revision(quotation.id)
    third = quotation_service.create_revision(second.id)

    assert second.quote_number == f"{quotation.quote_number}-R2"
    assert third.quote_number == f"{quotation.quote_number}-R3"
    assert third.revision == 3
    assert third.parent_quotation_id == second.id
