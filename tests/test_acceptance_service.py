"""
Acceptance tracking: quantity clamping, partial/full acceptance and the
single-active-acceptance rule.
"""
import pytest

from erp_pricing.errors import NotFoundError, ValidationError
from erp_pricing.services.acceptance_service import clamp_quantity


@pytest.mark.parametrize("requested,quoted,expected", [
    (15, 10, 10),
    (-3, 10, 0),
    (4, 10, 4),
    (None, 10, 10),
])
def test_clamp_quantity(requested, quoted, expected):
    assert clamp_quantity(requested, quoted) == expected


def test_partial_acceptance(acceptance_service, quotation_service, quotation, quotation_lines):
    pump, valve = quotation_lines

    acceptance = acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed",
        items=[
            {"quotation_item_id": pump.id, "accepted_quantity": 15, "priority": "High"},
            {"quotation_item_id": valve.id, "is_accepted": False, "rejection_reason": "Out of budget"},
        ],
    )
    rows = {row.quotation_item_id: row for row in acceptance_service.get_item_acceptances(acceptance.id)}

    assert acceptance.status == "Active"
    assert rows[pump.id].accepted_quantity == 10
    assert rows[pump.id].rejected_quantity == 0
    assert rows[pump.id].accepted_line_total == pytest.approx(500.0)
    assert rows[pump.id].priority == "High"
    assert rows[valve.id].is_accepted is False
    assert rows[valve.id].accepted_quantity == 0
    assert rows[valve.id].rejected_quantity == 5
    assert acceptance.total_accepted_amount == pytest.approx(500.0)
    assert quotation_service.get_quotation(quotation.id).status == "Accepted"


def test_negative_quantity_is_not_accepted(acceptance_service, quotation, quotation_lines):
    pump, valve = quotation_lines
    acceptance = acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed",
        items=[
            {"quotation_item_id": pump.id, "accepted_quantity": -3},
            {"quotation_item_id": valve.id, "accepted_quantity": 2},
        ],
    )
    rows = {row.quotation_item_id: row for row in acceptance_service.get_item_acceptances(acceptance.id)}
    assert rows[pump.id].accepted_quantity == 0
    assert rows[pump.id].is_accepted is False
    assert rows[valve.id].accepted_quantity == 2
    assert acceptance.total_accepted_amount == pytest.approx(40.0)


def test_partial_acceptance_needs_an_accepted_item(acceptance_service, quotation, quotation_lines):
    pump, _ = quotation_lines
    with pytest.raises(ValidationError, match="Please select at least one item for partial acceptance"):
        acceptance_service.record_acceptance(quotation.id, "Partial", "Ahmed", items=[])
    with pytest.raises(ValidationError, match="Please select at least one item"):
        acceptance_service.record_acceptance(
            quotation.id, "Partial", "Ahmed",
            items=[{"quotation_item_id": pump.id, "is_accepted": False}],
        )
    assert acceptance_service.list_acceptances(quotation.id) == []


def test_full_acceptance_accepts_everything(acceptance_service, quotation):
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    rows = acceptance_service.get_item_acceptances(acceptance.id)

    assert len(rows) == 2
    assert all(row.is_accepted for row in rows)
    assert acceptance.total_accepted_amount == pytest.approx(quotation.subtotal)


def test_full_acceptance_rejecting_every_line(acceptance_service, quotation_service, quotation, quotation_lines):
    pump, valve = quotation_lines
    with pytest.raises(ValidationError, match="Full acceptance must accept at least one item"):
        acceptance_service.record_acceptance(
            quotation.id, "Full", "Ahmed",
            items=[
                {"quotation_item_id": pump.id, "is_accepted": False},
                {"quotation_item_id": valve.id, "is_accepted": False},
            ],
        )

    assert acceptance_service.list_acceptances(quotation.id) == []
    assert quotation_service.get_quotation(quotation.id).status == "Draft"


def test_new_acceptance_supersedes_previous(acceptance_service, quotation, quotation_lines):
    pump, _ = quotation_lines
    first = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    second = acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed", items=[{"quotation_item_id": pump.id}]
    )

    statuses = {a.id: a.status for a in acceptance_service.list_acceptances(quotation.id)}
    assert statuses == {first.id: "Superseded", second.id: "Active"}
    assert acceptance_service.get_active_acceptance(quotation.id).id == second.id
    assert acceptance_service.accepted_item_ids(quotation.id) == {pump.id}


def test_duplicate_selections_keep_the_first(acceptance_service, quotation, quotation_lines):
    pump, _ = quotation_lines
    acceptance = acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed",
        items=[
            {"quotation_item_id": pump.id, "accepted_quantity": 3},
            {"quotation_item_id": pump.id, "accepted_quantity": 7},
        ],
    )
    rows = acceptance_service.get_item_acceptances(acceptance.id)
    assert len(rows) == 1
    assert rows[0].accepted_quantity == 3


def test_item_from_another_quotation_is_rejected(acceptance_service, quotation_service, quotation):
    other = quotation_service.create_quotation(
        customer_id="RETAIL", items=[{"description": "Other", "quantity": 1, "unit_price": 1}]
    )
    foreign = quotation_service.get_items(other.id)[0]

    with pytest.raises(ValidationError, match="does not belong"):
        acceptance_service.record_acceptance(
            quotation.id, "Partial", "Ahmed", items=[{"quotation_item_id": foreign.id}]
        )


def test_invalid_input(acceptance_service, quotation):
    with pytest.raises(ValidationError, match="Acceptance type"):
        acceptance_service.record_acceptance(quotation.id, "Most", "Ahmed")
    with pytest.raises(ValidationError, match="Accepted by"):
        acceptance_service.record_acceptance(quotation.id, "Full", "")
    with pytest.raises(NotFoundError):
        acceptance_service.record_acceptance("missing", "Full", "Ahmed")


def test_bulk_add_skips_recorded_lines(acceptance_service, quotation, quotation_lines):
    pump, valve = quotation_lines
    acceptance = acceptance_service.record_acceptance(
        quotation.id, "Partial", "Ahmed", items=[{"quotation_item_id": pump.id}]
    )

    created = acceptance_service.bulk_add_item_acceptances(acceptance.id, [
        {"quotation_item_id": pump.id},
        {"quotation_item_id": valve.id, "accepted_quantity": 9},
        {"quotation_item_id": valve.id, "accepted_quantity": 1},
    ])

    assert [row.quotation_item_id for row in created] == [valve.id]
    assert created[0].accepted_quantity == 5
    assert acceptance_service.get_acceptance(acceptance.id).total_accepted_amount == pytest.approx(600.0)

    with pytest.raises(ValidationError, match="already recorded"):
        acceptance_service.add_item_acceptance(acceptance.id, {"quotation_item_id": pump.id})


def test_reactivating_supersedes_the_current_one(acceptance_service, quotation):
    first = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    second = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")

    acceptance_service.update_acceptance(first.id, {"status": "Active"})

    assert acceptance_service.get_acceptance(second.id).status == "Superseded"
    assert acceptance_service.get_active_acceptance(quotation.id).id == first.id


def test_update_rejects_unknown_fields(acceptance_service, quotation):
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    with pytest.raises(ValidationError):
        acceptance_service.update_acceptance(acceptance.id, {"total_accepted_amount": 1})

    updated = acceptance_service.update_acceptance(acceptance.id, {"internal_notes": "Called back"})
    assert updated.internal_notes == "Called back"


def test_cancel_leaves_no_active_acceptance(acceptance_service, quotation):
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    acceptance_service.cancel_acceptance(acceptance.id)

    assert acceptance_service.get_active_acceptance(quotation.id) is None
    assert acceptance_service.accepted_item_ids(quotation.id) == set()


def test_confirmations(acceptance_service, quotation):
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    confirmation = acceptance_service.add_confirmation(
        acceptance.id, "Email", "Signed reply", "Ahmed", confirmation_reference="MSG-1"
    )

    assert acceptance_service.get_confirmations(acceptance.id) == [confirmation]
    with pytest.raises(ValidationError, match="Confirmation type"):
        acceptance_service.add_confirmation(acceptance.id, "Pigeon", "Note", "Ahmed")


def test_delete_cascades(acceptance_service, quotation):
    acceptance = acceptance_service.record_acceptance(quotation.id, "Full", "Ahmed")
    acceptance_service.add_confirmation(acceptance.id, "Phone", "Call", "Ahmed")

    acceptance_service.delete_acceptance(acceptance.id)

    assert acceptance_service.get_item_acceptances(acceptance.id) == []
    assert acceptance_service.get_confirmations(acceptance.id) == []
    with pytest.raises(NotFoundError):
        acceptance_service.get_acceptance(acceptance.id)
