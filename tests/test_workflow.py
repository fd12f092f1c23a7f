"""
Unit tests — Payment workflow (payment_workflow.py).

Drives the step machine against an in-memory document store and a fake
uploader with a frozen clock. Covers resumption, the save dialog, failure
paths that must leave the user on the current step, and FSM round-trips.
"""
from __future__ import annotations

import pytest

from bot.models.models import PaymentStep
from bot.services.errors import (
    InvalidTransition,
    NotAuthenticated,
    PersistenceFailed,
    UploadFailed,
    ValidationFailed,
)
from bot.services.identity_service import Principal, Role
from bot.services.payment_workflow import PaymentWorkflow
from bot.services.pricing_service import CountryStatus, Plan
from tests.conftest import (
    EARLY_BIRD_NOW,
    REGULAR_NOW,
    FailingStore,
    FakeUploader,
    MemoryStore,
    country,
    frozen_clock,
)


def _workflow(pricing_config, principal=None, now=REGULAR_NOW) -> PaymentWorkflow:
    return PaymentWorkflow(principal or country("romania"), pricing_config, frozen_clock(now))


async def _at_payment_step(pricing_config, store) -> PaymentWorkflow:
    wf = await _workflow(pricing_config).mount(store)
    wf.request_save()
    await wf.save_registration_details(store)
    wf.acknowledge()
    return wf


# ─────────────────────────── Mount ────────────────────────────────────────────

class TestMount:
    async def test_fresh_country_starts_at_registration(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        assert wf.step == PaymentStep.REGISTRATION_DETAIL
        assert wf.form["plan"] == Plan.REGULAR
        assert wf.form["country_status"] == CountryStatus.NOT_PREVIOUS_HOST
        assert wf.form["number_of_teams"] == 1

    async def test_resumes_at_persisted_step(self, pricing_config) -> None:
        pricing = {"totalBank": 287000.0, "subtotal": 287000.0}
        store = MemoryStore({
            "romania": {
                "registration": {
                    "plan": "early bird",
                    "country_status": "Not a Previous Host",
                    "number_of_teams": 2,
                    "additional_observers": 1,
                    "single_room_requests": 0,
                    "paid_before": "0",
                },
                "pricing": pricing,
                "step": PaymentStep.PAYMENT_CONFIRMATION,
            }
        })
        wf = await _workflow(pricing_config).mount(store)

        assert wf.step == PaymentStep.PAYMENT_CONFIRMATION
        assert wf.reached_step == PaymentStep.PAYMENT_CONFIRMATION
        assert wf.pricing == pricing
        assert wf.form["number_of_teams"] == 2
        assert wf.form["additional_observers"] == 1
        # authoritative plan wins over the persisted copy
        assert wf.form["plan"] == Plan.REGULAR
        assert wf.acknowledged is False

    async def test_persisted_confirmation_restores_consent(self, pricing_config) -> None:
        store = MemoryStore({
            "romania": {
                "confirmation": {"transaction_number": "TX-9", "proof_of_payment_url": "https://p"},
                "step": PaymentStep.WAITING_FOR_VERIFICATION,
            }
        })
        wf = await _workflow(pricing_config).mount(store)
        assert wf.acknowledged is True
        assert wf.confirmation_form["transaction_number"] == "TX-9"
        assert wf.confirmation_form["need_invoice"] is False

    async def test_future_host_defaults_to_one_observer(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config, country("brazil")).mount(memory_store)
        assert wf.form["additional_observers"] == 1
        assert wf.preview().observers_cost == 0

    async def test_anonymous_cannot_mount(self, pricing_config, memory_store, anonymous) -> None:
        with pytest.raises(NotAuthenticated) as exc:
            await _workflow(pricing_config, anonymous).mount(memory_store)
        assert str(exc.value) == "Not authenticated"

    async def test_admin_without_country_cannot_mount(self, pricing_config, memory_store) -> None:
        admin = Principal(principal_id=1, role=Role.ADMIN)
        with pytest.raises(InvalidTransition):
            await _workflow(pricing_config, admin).mount(memory_store)

    async def test_load_failure_is_wrapped(self, pricing_config) -> None:
        class BrokenStore(MemoryStore):
            async def get(self, country_key):
                raise ConnectionError("down")

        with pytest.raises(PersistenceFailed):
            await _workflow(pricing_config).mount(BrokenStore())


# ─────────────────────────── Step 0 ───────────────────────────────────────────

class TestRegistrationDetail:
    async def test_increment_updates_preview(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        breakdown = wf.increment("single_room_requests", 1)
        assert wf.form["single_room_requests"] == 1
        assert breakdown.single_rooms_cost == pricing_config.single_room_fee

    async def test_counter_cannot_go_negative(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        with pytest.raises(ValidationFailed):
            wf.increment("additional_observers", -1)
        assert wf.form["additional_observers"] == 0

    async def test_future_host_keeps_one_observer(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config, country("brazil")).mount(memory_store)
        with pytest.raises(ValidationFailed):
            wf.increment("additional_observers", -1)

    async def test_not_accredited_limited_to_one_team(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config, country("atlantis")).mount(memory_store)
        assert wf.max_teams == 1
        with pytest.raises(ValidationFailed):
            wf.set_field("number_of_teams", 2)

    async def test_unknown_field_rejected(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        with pytest.raises(ValidationFailed):
            wf.set_field("plan", 1)

    async def test_save_requires_confirmation(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        with pytest.raises(InvalidTransition):
            await wf.save_registration_details(memory_store)
        assert memory_store.writes == []

    async def test_cancel_closes_dialog_without_writing(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        wf.request_save()
        assert wf.confirm_open is True
        wf.cancel_save()
        assert wf.confirm_open is False
        assert wf.step == PaymentStep.REGISTRATION_DETAIL
        assert memory_store.writes == []

    async def test_save_persists_and_advances(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config, now=EARLY_BIRD_NOW).mount(memory_store)
        wf.set_field("number_of_teams", 2)
        wf.request_save()
        breakdown = await wf.save_registration_details(memory_store)

        doc = memory_store.documents["romania"]
        assert doc["step"] == PaymentStep.PAYMENT_CONFIRMATION
        assert doc["registration"]["plan"] == Plan.EARLY_BIRD
        assert doc["registration"]["number_of_teams"] == 2
        assert doc["pricing"]["totalBank"] == float(breakdown.total_bank)
        assert wf.step == PaymentStep.PAYMENT_CONFIRMATION
        assert wf.confirm_open is False

    async def test_save_failure_keeps_step_and_form(self, pricing_config) -> None:
        store = FailingStore()
        wf = await _workflow(pricing_config).mount(store)
        wf.set_field("number_of_teams", 2)
        wf.increment("single_room_requests", 1)
        wf.request_save()

        with pytest.raises(PersistenceFailed):
            await wf.save_registration_details(store)

        assert wf.step == PaymentStep.REGISTRATION_DETAIL
        assert wf.form["number_of_teams"] == 2
        assert wf.form["single_room_requests"] == 1
        assert wf.submitting is False

    async def test_save_preserves_sibling_fields(self, pricing_config) -> None:
        store = MemoryStore({"romania": {"confirmation": {"transaction_number": "OLD"}, "step": 0}})
        wf = await _workflow(pricing_config).mount(store)
        wf.request_save()
        await wf.save_registration_details(store)
        assert store.documents["romania"]["confirmation"] == {"transaction_number": "OLD"}


# ─────────────────────────── Step 1 ───────────────────────────────────────────

class TestPaymentConfirmation:
    async def test_fields_locked_until_consent(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        wf.request_save()
        await wf.save_registration_details(memory_store)
        with pytest.raises(InvalidTransition):
            wf.set_confirmation_field("transaction_number", "TX-1")

    @pytest.mark.parametrize("name, value, message", [
        ("transaction_number", "   ", "Transaction number is required"),
        ("transaction_number", "9" * 101, "Transaction number is too long"),
        ("order_number", "7" * 101, "Order number is too long"),
    ])
    async def test_reference_numbers_checked_on_entry(
        self, pricing_config, memory_store, name, value, message
    ) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("transaction_number", "TX-1")

        with pytest.raises(ValidationFailed) as exc:
            wf.set_confirmation_field(name, value)

        assert exc.value.messages == [message]
        assert wf.confirmation_form["transaction_number"] == "TX-1"

    async def test_order_number_can_be_cleared(self, pricing_config, memory_store) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("order_number", "ORD-1")
        wf.set_confirmation_field("order_number", "")
        assert wf.confirmation_form["order_number"] == ""

    async def test_submit_without_proof_fails_validation(self, pricing_config, memory_store) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("transaction_number", "TX-1")
        writes_before = len(memory_store.writes)

        with pytest.raises(ValidationFailed) as exc:
            await wf.submit_payment_confirmation(memory_store)

        assert "Proof of payment is required" in exc.value.messages
        assert wf.step == PaymentStep.PAYMENT_CONFIRMATION
        assert len(memory_store.writes) == writes_before

    async def test_upload_failure_leaves_proof_unset(self, pricing_config, memory_store, proof_file) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        with pytest.raises(UploadFailed):
            await wf.upload_proof(FakeUploader(fail=True), proof_file)
        assert wf.confirmation_form["proof_of_payment_url"] == ""

    async def test_full_submission(self, pricing_config, memory_store, proof_file) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        uploader = FakeUploader()
        wf.set_confirmation_field("transaction_number", " TX-42 ")
        wf.set_confirmation_field("need_invoice", True)
        url = await wf.upload_proof(uploader, proof_file)
        await wf.submit_payment_confirmation(memory_store)

        assert uploader.paths[0].startswith("payment-proofs/romania/")
        assert uploader.paths[0].endswith("_receipt.pdf")
        doc = memory_store.documents["romania"]
        assert doc["step"] == PaymentStep.WAITING_FOR_VERIFICATION
        assert doc["confirmation"] == {
            "transaction_number": "TX-42",
            "order_number": None,
            "need_invoice": True,
            "proof_of_payment_url": url,
        }
        assert "registration" in doc
        assert wf.step == PaymentStep.WAITING_FOR_VERIFICATION

    async def test_submit_failure_keeps_evidence(self, pricing_config, memory_store, proof_file) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("transaction_number", "TX-1")
        await wf.upload_proof(FakeUploader(), proof_file)

        with pytest.raises(PersistenceFailed):
            await wf.submit_payment_confirmation(FailingStore())

        assert wf.step == PaymentStep.PAYMENT_CONFIRMATION
        assert wf.confirmation_form["transaction_number"] == "TX-1"
        assert wf.confirmation_form["proof_of_payment_url"]


# ─────────────────────────── Step 2/3 and navigation ──────────────────────────

class TestNavigation:
    async def test_finish_does_not_persist(self, pricing_config, memory_store, proof_file) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("transaction_number", "TX-1")
        await wf.upload_proof(FakeUploader(), proof_file)
        await wf.submit_payment_confirmation(memory_store)
        writes = len(memory_store.writes)

        wf.finish()

        assert wf.step == PaymentStep.PAYMENT_COMPLETED
        assert len(memory_store.writes) == writes
        assert memory_store.documents["romania"]["step"] == PaymentStep.WAITING_FOR_VERIFICATION

    async def test_back_and_forward_within_reached_steps(self, pricing_config, memory_store) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.go_back()
        assert wf.step == PaymentStep.REGISTRATION_DETAIL
        wf.go_forward()
        assert wf.step == PaymentStep.PAYMENT_CONFIRMATION
        with pytest.raises(InvalidTransition):
            wf.go_forward()

    async def test_cannot_go_back_from_first_step(self, pricing_config, memory_store) -> None:
        wf = await _workflow(pricing_config).mount(memory_store)
        with pytest.raises(InvalidTransition):
            wf.go_back()

    async def test_fsm_round_trip(self, pricing_config, memory_store) -> None:
        wf = await _at_payment_step(pricing_config, memory_store)
        wf.set_confirmation_field("order_number", "ORD-7")

        restored = PaymentWorkflow.from_data(
            wf.to_data(), wf.principal, pricing_config, frozen_clock(REGULAR_NOW)
        )
        assert restored.step == wf.step
        assert restored.reached_step == wf.reached_step
        assert restored.form == wf.form
        assert restored.confirmation_form == wf.confirmation_form
        assert restored.acknowledged is True
        assert restored.pricing == wf.pricing
