"""
Tests for batch.py - batch lifecycle, uniqueness and the write-once anchor.
"""
import pytest

from app.core.errors import (
    AlreadyAnchoredError, ConflictError, InvalidOperationError,
    NotFoundError, ValidationError
)
from app.db.schema import BatchStatus, MintStatus
from app.models.batch import BatchComponent, BatchUpdate, QualityControl
from app.services.batch import BatchService

from tests.conftest import MANUFACTURER, PARTNER


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

class TestCreateBatch:
    """Carbon footprint and per-manufacturer uniqueness."""

    def test_scenario_duplicate_batch_number_conflicts(self, session, make_batch):
        """BATCH-1, qty 100 at 2.5 kg/unit is 250 kg; the same number again conflicts."""
        batch = make_batch("BATCH-1", quantity=100)

        assert batch.carbon_footprint == 250.0
        assert batch.batch_status == BatchStatus.PRODUCTION
        assert batch.mint_status == MintStatus.NOT_MINTED

        with pytest.raises(ConflictError):
            make_batch("BATCH-1", quantity=5)

    def test_batch_number_is_trimmed_before_uniqueness_check(self, session, make_batch):
        make_batch("1001")
        with pytest.raises(ConflictError):
            make_batch("  1001 ")

    def test_override_replaces_computed_footprint(self, session, make_batch):
        batch = make_batch("1001", quantity=100, carbon_footprint=180.0)
        assert batch.carbon_footprint == 180.0
        assert batch.carbon_footprint_overridden is True

    def test_unknown_template_is_not_found(self, session, make_batch, plant):
        with pytest.raises(NotFoundError):
            make_batch("1001", template_id=plant.id)

    def test_expiry_before_production_rejected(self, session, make_batch):
        from datetime import date
        with pytest.raises(ValidationError):
            make_batch("1001", expiry_date=date(2024, 1, 1))

    def test_quality_control_and_components_are_stored(self, session, make_batch):
        batch = make_batch(
            "1001",
            quality_control=QualityControl(passed=True, inspector_name="A. Berg"),
            components=[BatchComponent(token_id=3, token_name="Ore", quantity=40)]
        )
        assert batch.qc_passed is True
        assert batch.qc_inspector_name == "A. Berg"
        assert batch.components[0]["token_id"] == 3

    def test_duplicate_component_tokens_rejected(self, session, make_batch):
        with pytest.raises(ValidationError):
            make_batch("1001", components=[
                BatchComponent(token_id=3, quantity=1),
                BatchComponent(token_id=3, quantity=2),
            ])

    def test_lookup_by_number_and_listing(self, session, make_batch):
        make_batch("1001")
        make_batch("1002")
        service = BatchService(session)

        assert service.find_by_number(MANUFACTURER, "1002").batch_number == "1002"
        assert len(service.list_batches(MANUFACTURER)) == 2
        assert service.list_batches(PARTNER) == []


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

class TestUpdateBatch:
    """Recalculation, frozen minted fields and forward-only status."""

    def test_quantity_change_recomputes_footprint(self, session, make_batch):
        batch = make_batch("1001", quantity=100)
        updated = BatchService(session).update_batch(
            MANUFACTURER, batch.id, BatchUpdate(quantity=40))
        assert updated.carbon_footprint == 100.0

    def test_explicit_footprint_wins_over_recompute(self, session, make_batch):
        batch = make_batch("1001", quantity=100)
        updated = BatchService(session).update_batch(
            MANUFACTURER, batch.id, BatchUpdate(quantity=40, carbon_footprint=77.0))
        assert updated.carbon_footprint == 77.0
        assert updated.carbon_footprint_overridden is True

    def test_renumber_to_existing_number_conflicts(self, session, make_batch):
        make_batch("1001")
        other = make_batch("1002")
        with pytest.raises(ConflictError):
            BatchService(session).update_batch(
                MANUFACTURER, other.id, BatchUpdate(batch_number="1001"))

    def test_minted_fields_frozen_after_anchor(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        service.attach_token_anchor(batch.id, 7, "0xabc", 12345)

        with pytest.raises(InvalidOperationError):
            service.update_batch(MANUFACTURER, batch.id, BatchUpdate(quantity=5))

    def test_status_still_advances_after_anchor(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        service.attach_token_anchor(batch.id, 7, "0xabc", 12345)

        updated = service.update_batch(
            MANUFACTURER, batch.id, BatchUpdate(batch_status=BatchStatus.SHIPPED))
        assert updated.batch_status == BatchStatus.SHIPPED

    def test_status_cannot_move_backwards(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        service.update_batch(MANUFACTURER, batch.id,
                             BatchUpdate(batch_status=BatchStatus.COMPLETED))

        with pytest.raises(InvalidOperationError):
            service.update_batch(MANUFACTURER, batch.id,
                                 BatchUpdate(batch_status=BatchStatus.PRODUCTION))

    def test_other_manufacturer_cannot_update(self, session, make_batch):
        batch = make_batch("1001")
        with pytest.raises(NotFoundError):
            BatchService(session).update_batch(PARTNER, batch.id, BatchUpdate(quantity=5))


# ---------------------------------------------------------------------------
# Anchor and delete
# ---------------------------------------------------------------------------

class TestAnchorAndDelete:
    """The anchor is write-once and blocks deletion."""

    def test_unanchored_batch_can_be_deleted(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        service.delete_batch(MANUFACTURER, batch.id)

        assert service.find_by_number(MANUFACTURER, "1001") is None

    def test_scenario_anchored_batch_cannot_be_deleted(self, session, make_batch):
        """Anchor token 7 from tx 0xabc at block 12345, then delete is refused."""
        batch = make_batch("BATCH-1")
        service = BatchService(session)

        anchored = service.attach_token_anchor(batch.id, 7, "0xabc", 12345)
        assert anchored.token_id == 7
        assert anchored.block_number == 12345
        assert anchored.mint_status == MintStatus.ANCHORED

        with pytest.raises(InvalidOperationError):
            service.delete_batch(MANUFACTURER, batch.id)

    def test_second_anchor_is_rejected_and_first_kept(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        service.attach_token_anchor(batch.id, 7, "0xabc", 12345)

        with pytest.raises(AlreadyAnchoredError):
            service.attach_token_anchor(batch.id, 8, "0xdef", 12346)

        stored = service.get_batch(batch.id)
        assert (stored.token_id, stored.tx_hash) == (7, "0xabc")

    def test_already_anchored_is_a_conflict(self):
        assert issubclass(AlreadyAnchoredError, ConflictError)

    def test_token_cannot_anchor_two_batches(self, session, make_batch):
        first = make_batch("1001")
        second = make_batch("1002")
        service = BatchService(session)
        service.attach_token_anchor(first.id, 7, "0xabc")

        with pytest.raises(ConflictError):
            service.attach_token_anchor(second.id, 7, "0xabc")
        assert service.get_batch(second.id).token_id is None

    def test_anchor_on_missing_batch(self, session):
        from uuid import uuid4
        with pytest.raises(NotFoundError):
            BatchService(session).attach_token_anchor(uuid4(), 7, "0xabc")

    def test_delete_refused_while_mint_in_flight(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)
        assert service.claim_mint(batch.id) is True

        with pytest.raises(InvalidOperationError):
            service.delete_batch(MANUFACTURER, batch.id)

    def test_mint_claim_is_exclusive(self, session, make_batch):
        batch = make_batch("1001")
        service = BatchService(session)

        assert service.claim_mint(batch.id) is True
        assert service.claim_mint(batch.id) is False
