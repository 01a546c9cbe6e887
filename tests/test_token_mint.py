"""
Tests for token_mint.py - the mint-and-anchor saga and reconcile.
"""
import threading

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    AlreadyAnchoredError, ChainError, ChainErrorKind, ConflictError,
    InvalidOperationError, MintConfirmationError, PendingConfirmationError,
    ReconciliationError, ValidationError
)
from app.db.schema import MintStatus
from app.services.batch import BatchService
from app.services.token_mint import TokenMintService, ledger_batch_number, metadata_uri

from tests.conftest import MANUFACTURER, PARTNER
from tests.fixtures.fake_ledger import CONTRACT_ADDRESS, FakeLedger


@pytest.fixture
def minter(session, ledger):
    return TokenMintService(session, ledger)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

class TestMintParams:

    def test_numeric_batch_number_is_accepted(self):
        assert ledger_batch_number(" 1001 ") == 1001

    @pytest.mark.parametrize("number", ["BATCH-1", "0", "-4", ""])
    def test_non_positive_or_free_form_number_rejected(self, number):
        with pytest.raises(ValidationError):
            ledger_batch_number(number)

    def test_params_are_in_ledger_units(self, minter, make_batch):
        batch = make_batch("1001", quantity=100, carbon_footprint=249.5)
        params = minter.build_mint_params(batch)

        assert params.batch_number == 1001
        assert params.carbon_footprint == 250
        assert params.metadata_uri == metadata_uri(1001)
        assert params.metadata_uri.endswith("/metadata/batch/1001")
        assert params.expiry_date == 0

    def test_footprint_below_one_kg_cannot_be_minted(self, minter, make_batch):
        batch = make_batch("1001", quantity=100, carbon_footprint=0.2)
        with pytest.raises(ValidationError):
            minter.build_mint_params(batch)


# ---------------------------------------------------------------------------
# Mint and anchor
# ---------------------------------------------------------------------------

class TestMintAndAnchor:
    """Submit, confirm, extract the token id, write the anchor back."""

    def test_happy_path_anchors_batch(self, minter, ledger, make_batch):
        ledger.next_token_id = 7
        batch = make_batch("1001")

        anchored = minter.mint_and_anchor(MANUFACTURER, batch.id)

        assert anchored.token_id == 7
        assert anchored.mint_status == MintStatus.ANCHORED
        assert anchored.block_number == 12345
        assert anchored.tx_hash == ledger.mint_tx[7]
        assert anchored.token_contract_address == CONTRACT_ADDRESS
        assert ledger.tokens[7].carbon_footprint == 250

    def test_anchored_batch_is_not_minted_again(self, minter, ledger, make_batch):
        batch = make_batch("1001")
        minter.mint_and_anchor(MANUFACTURER, batch.id)

        with pytest.raises(AlreadyAnchoredError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)
        assert ledger.mint_calls == 1

    def test_signer_must_be_manufacturer(self, session, make_batch):
        batch = make_batch("1001")
        other = FakeLedger(signer=PARTNER)

        with pytest.raises(InvalidOperationError):
            TokenMintService(session, other).mint_and_anchor(MANUFACTURER, batch.id)
        assert other.mint_calls == 0

    def test_free_form_batch_number_is_not_minted(self, minter, ledger, make_batch):
        batch = make_batch("BATCH-1")
        with pytest.raises(ValidationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)
        assert ledger.mint_calls == 0

    def test_concurrent_mint_is_refused(self, session, minter, ledger, make_batch):
        batch = make_batch("1001")
        BatchService(session).claim_mint(batch.id)
        session.refresh(batch)

        with pytest.raises(ConflictError) as exc_info:
            minter.mint_and_anchor(MANUFACTURER, batch.id)
        assert exc_info.value.code == "mint_in_progress"
        assert ledger.mint_calls == 0

    def test_submit_failure_marks_failed_and_allows_retry(self, minter, ledger, make_batch):
        batch = make_batch("1001")
        ledger.fail_with = ChainError(ChainErrorKind.INSUFFICIENT_FUNDS,
                                      "Insufficient funds to pay for gas.")

        with pytest.raises(ChainError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)
        failed = minter.batches.get_batch(batch.id)
        assert failed.mint_status == MintStatus.FAILED
        assert failed.mint_error == "Insufficient funds to pay for gas."

        ledger.fail_with = None
        assert minter.mint_and_anchor(MANUFACTURER, batch.id).mint_status == MintStatus.ANCHORED

    def test_reverted_transaction_marks_failed(self, minter, ledger, make_batch):
        ledger.revert = True
        batch = make_batch("1001")

        with pytest.raises(ChainError) as exc_info:
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        assert exc_info.value.kind == ChainErrorKind.REVERTED
        stored = minter.batches.get_batch(batch.id)
        assert stored.mint_status == MintStatus.FAILED
        assert stored.token_id is None

    def test_missing_event_leaves_batch_pending(self, minter, ledger, make_batch):
        ledger.emit_event = False
        batch = make_batch("1001")

        with pytest.raises(MintConfirmationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        stored = minter.batches.get_batch(batch.id)
        assert stored.mint_status == MintStatus.PENDING
        assert stored.mint_error == "BatchMinted event not found in transaction receipt."
        assert stored.mint_tx_hash is not None

    def test_existing_onchain_token_is_adopted(self, minter, ledger, make_batch):
        batch = make_batch("1001")
        ledger.mint_batch(minter.build_mint_params(batch))

        anchored = minter.mint_and_anchor(MANUFACTURER, batch.id)

        assert anchored.token_id == 1
        assert anchored.tx_hash == ledger.mint_tx[1]
        assert ledger.mint_calls == 1


# ---------------------------------------------------------------------------
# Pending confirmation
# ---------------------------------------------------------------------------

class TestPendingConfirmation:
    """A timed-out or cancelled wait leaves the batch pending, not failed."""

    def test_timeout_leaves_pending_then_reconcile_anchors(self, minter, ledger, make_batch):
        ledger.confirm = False
        batch = make_batch("1001")

        with pytest.raises(PendingConfirmationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id, timeout=0.01)

        pending = minter.batches.get_batch(batch.id)
        assert pending.mint_status == MintStatus.PENDING
        assert pending.token_id is None

        ledger.release_withheld()
        result = minter.reconcile(batch.id)

        assert result.action == "anchored"
        assert result.anchor.token_id == 1
        assert result.anchor.block_number == 12345
        assert ledger.mint_calls == 1

    def test_cancelled_wait_is_pending(self, minter, ledger, make_batch):
        batch = make_batch("1001")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(PendingConfirmationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id, cancel_event=cancel)
        assert minter.batches.get_batch(batch.id).mint_status == MintStatus.PENDING

    def test_unconfirmed_transaction_stays_pending(self, minter, ledger, make_batch):
        ledger.confirm = False
        batch = make_batch("1001")
        with pytest.raises(PendingConfirmationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        # Token not yet visible under the batch key either
        ledger.by_batch.clear()

        result = minter.reconcile(batch.id)
        assert result.action == "still_pending"
        assert result.mint_status == MintStatus.PENDING


# ---------------------------------------------------------------------------
# Reconcile
# ---------------------------------------------------------------------------

class TestReconcile:
    """reconcile converges on the ledger state and is idempotent."""

    def test_scenario_write_back_failure_recovered_by_reconcile(
            self, minter, ledger, make_batch, monkeypatch):
        """Mint succeeds, the anchor write fails, reconcile finishes without re-minting."""
        ledger.next_token_id = 9
        batch = make_batch("1001")

        def broken_attach(*args, **kwargs):
            raise OperationalError("UPDATE product_batch", {}, Exception("database is locked"))

        monkeypatch.setattr(BatchService, "attach_token_anchor", broken_attach)
        with pytest.raises(ReconciliationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)
        monkeypatch.undo()

        stranded = minter.batches.get_batch(batch.id)
        assert stranded.token_id is None
        assert stranded.mint_status == MintStatus.PENDING
        assert stranded.mint_tx_hash == ledger.mint_tx[9]

        result = minter.reconcile(batch.id)
        assert result.action == "anchored"
        assert result.anchor.token_id == 9
        assert result.anchor.tx_hash == ledger.mint_tx[9]
        assert ledger.mint_calls == 1

        again = minter.reconcile(batch.id)
        assert again.action == "already_anchored"
        assert again.anchor.token_id == 9

    def test_token_held_by_another_batch_is_a_conflict(self, session, minter, ledger, make_batch):
        """Retrying cannot fix this, so it surfaces as 409 rather than pending."""
        holder = make_batch("1001")
        BatchService(session).attach_token_anchor(holder.id, 7, "0xabc")
        ledger.next_token_id = 7
        batch = make_batch("1002")

        with pytest.raises(ConflictError) as exc_info:
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        assert not isinstance(exc_info.value, ReconciliationError)
        assert exc_info.value.status_code == 409
        stranded = minter.batches.get_batch(batch.id)
        assert stranded.token_id is None
        assert stranded.mint_status == MintStatus.PENDING

    def test_missing_event_recovered_from_batch_key(self, minter, ledger, make_batch):
        ledger.emit_event = False
        batch = make_batch("1001")
        with pytest.raises(MintConfirmationError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        result = minter.reconcile(batch.id)
        assert result.action == "anchored"
        assert result.anchor.token_id == 1

    def test_reverted_transaction_reconciles_to_failed(self, minter, ledger, make_batch):
        ledger.revert = True
        batch = make_batch("1001")
        with pytest.raises(ChainError):
            minter.mint_and_anchor(MANUFACTURER, batch.id)

        result = minter.reconcile(batch.id)
        assert result.action == "marked_failed"
        assert result.mint_status == MintStatus.FAILED

    def test_claimed_but_never_submitted_is_failed(self, session, minter, make_batch):
        batch = make_batch("1001")
        BatchService(session).claim_mint(batch.id)

        result = minter.reconcile(batch.id)
        assert result.action == "marked_failed"
        assert minter.batches.get_batch(batch.id).mint_error == "Mint was never submitted."

    def test_untouched_batch_has_nothing_to_do(self, minter, make_batch):
        batch = make_batch("1001")
        result = minter.reconcile(batch.id)

        assert result.action == "nothing_to_do"
        assert result.anchor is None

    def test_reconcile_is_scoped_to_owner(self, minter, make_batch):
        from app.core.errors import NotFoundError
        batch = make_batch("1001")
        with pytest.raises(NotFoundError):
            minter.reconcile(batch.id, manufacturer_address=PARTNER)
