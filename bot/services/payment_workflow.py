"""
Registration / payment workflow of a country.

Steps (linear, back-navigation never persists anything):

  0 RegistrationDetail      --save (validate → confirm → persist)-->     1
  1 PaymentConfirmation     --submit (ack → proof → validate → persist)--> 2
  2 WaitingForVerification  --finish (no persistence)-->                  3
  3 PaymentCompleted        terminal

The workflow object holds the in-memory side of the flow (form values,
dialog flags, last saved snapshots). Between Telegram updates it lives in the
FSM storage via `to_data()` / `from_data()`. A failed write never advances
the step and never clears the form, so the user can simply retry.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from bot.models.models import PaymentStep
from bot.services.errors import (
    InvalidTransition,
    NotAuthenticated,
    PersistenceFailed,
    UploadFailed,
    ValidationFailed,
)
from bot.services.identity_service import Principal
from bot.services.pricing_service import (
    Clock,
    CountryStatus,
    PriceBreakdown,
    PricingConfig,
    calculate_pricing,
    decide_country_status,
    decide_plan,
    utc_now,
)
from bot.services.upload_service import ProofFile, build_proof_path
from bot.validators import (
    PaymentConfirmationData,
    RegistrationDetailData,
    clean_order_number,
    clean_transaction_number,
    error_messages,
)

logger = logging.getLogger(__name__)

FORM_FIELDS = ("number_of_teams", "additional_observers", "single_room_requests")
CONFIRMATION_FIELDS = ("transaction_number", "order_number", "need_invoice")


class DocumentStore(Protocol):
    async def get(self, country_key: str) -> Optional[dict[str, Any]]: ...

    async def set(self, country_key: str, partial: dict[str, Any], merge: bool = True) -> None: ...


class ProofUploader(Protocol):
    async def upload(self, file: ProofFile, path_hint: str) -> str: ...


def _empty_confirmation() -> dict[str, Any]:
    return {
        "transaction_number": "",
        "order_number": "",
        "need_invoice": False,
        "proof_of_payment_url": "",
    }


class PaymentWorkflow:
    def __init__(
        self,
        principal: Principal,
        config: PricingConfig,
        clock: Clock = utc_now,
    ) -> None:
        self.principal = principal
        self.config = config
        self.clock = clock

        self.step: int = PaymentStep.REGISTRATION_DETAIL
        self.reached_step: int = PaymentStep.REGISTRATION_DETAIL

        self.saved_registration: Optional[dict[str, Any]] = None
        self.saved_confirmation: Optional[dict[str, Any]] = None
        self.pricing: Optional[dict[str, float]] = None

        self.acknowledged = False
        self.confirm_open = False
        self.submitting = False

        self.form: dict[str, Any] = self._default_form()
        self.confirmation_form: dict[str, Any] = _empty_confirmation()

    # ── Derived values ───────────────────────────────────────────────────────

    @property
    def plan(self) -> str:
        return decide_plan(self.clock(), self.config)

    @property
    def country_status(self) -> str:
        return decide_country_status(self.principal.country_key, self.config)

    @property
    def min_observers(self) -> int:
        return 1 if self.country_status == CountryStatus.FUTURE_HOST else 0

    @property
    def max_teams(self) -> int:
        return 1 if self.country_status == CountryStatus.NOT_ACCREDITED else 2

    def _default_form(self) -> dict[str, Any]:
        return {
            "plan": self.plan,
            "country_status": self.country_status,
            "number_of_teams": 1,
            "additional_observers": self.min_observers,
            "single_room_requests": 0,
            "paid_before": "0",
        }

    def refresh_derived(self) -> None:
        """
        Overwrite plan, country status and paid_before with their
        authoritative values; persisted copies are only ever displayed.
        """
        self.form["plan"] = self.plan
        self.form["country_status"] = self.country_status
        self.form["paid_before"] = str((self.saved_registration or {}).get("paid_before") or "0")
        if self.form["additional_observers"] < self.min_observers:
            self.form["additional_observers"] = self.min_observers
        if self.form["number_of_teams"] > self.max_teams:
            self.form["number_of_teams"] = self.max_teams

    def preview(self) -> PriceBreakdown:
        """Live pricing of the current form."""
        self.refresh_derived()
        return calculate_pricing(self.form, self.config, self.clock())

    # ── Loading ──────────────────────────────────────────────────────────────

    async def mount(self, store: DocumentStore) -> "PaymentWorkflow":
        """Resume from the persisted record, or start fresh at step 0."""
        country_key = self._require_country()
        try:
            state = await store.get(country_key)
        except Exception as exc:
            logger.warning("Could not load payment state of %s: %s", country_key, exc)
            raise PersistenceFailed("Failed to load payment state") from exc

        if state:
            registration = state.get("registration")
            if registration:
                self.saved_registration = dict(registration)
                self.form = {**self._default_form(), **registration}

            confirmation = state.get("confirmation")
            if confirmation:
                self.saved_confirmation = dict(confirmation)
                self.confirmation_form = {**_empty_confirmation(), **confirmation}
                self.acknowledged = True

            self.pricing = state.get("pricing")

            step = state.get("step")
            if isinstance(step, int) and step in PaymentStep.ALL:
                self.step = self.reached_step = step

        self.refresh_derived()
        return self

    # ── Step 0: registration detail ──────────────────────────────────────────

    def set_field(self, name: str, value: int) -> PriceBreakdown:
        self._require_step(PaymentStep.REGISTRATION_DETAIL)
        if name not in FORM_FIELDS:
            raise ValidationFailed([f"Unknown field: {name}"])

        value = int(value)
        if name == "number_of_teams":
            if value not in (1, 2):
                raise ValidationFailed(["Number of teams must be 1 or 2"])
            if value > self.max_teams:
                raise ValidationFailed(["Countries that are not accredited may register one team only"])
        elif value < 0:
            raise ValidationFailed(["Value must be 0 or more"])
        elif name == "additional_observers" and value < self.min_observers:
            raise ValidationFailed(["The future host registers at least one observer"])

        self.form[name] = value
        return self.preview()

    def increment(self, name: str, delta: int) -> PriceBreakdown:
        if name not in FORM_FIELDS:
            raise ValidationFailed([f"Unknown field: {name}"])
        return self.set_field(name, int(self.form[name]) + delta)

    def _validate_registration(self) -> RegistrationDetailData:
        self.refresh_derived()
        try:
            return RegistrationDetailData(**self.form)
        except ValidationError as exc:
            raise ValidationFailed(error_messages(exc)) from exc

    def request_save(self) -> RegistrationDetailData:
        """Validate and open the confirmation dialog."""
        self._require_step(PaymentStep.REGISTRATION_DETAIL)
        self._require_country()
        detail = self._validate_registration()
        self.confirm_open = True
        return detail

    def cancel_save(self) -> None:
        self.confirm_open = False

    async def save_registration_details(self, store: DocumentStore) -> PriceBreakdown:
        """Persist registration + totals and move on to the payment step."""
        self._require_step(PaymentStep.REGISTRATION_DETAIL)
        if not self.confirm_open:
            raise InvalidTransition("Confirm the registration details first")
        country_key = self._require_country()

        values = self._validate_registration().model_dump(mode="json")
        breakdown = calculate_pricing(values, self.config, self.clock())

        await self._persist(
            store,
            country_key,
            {
                "registration": values,
                "pricing": breakdown.as_record(),
                "step": PaymentStep.PAYMENT_CONFIRMATION,
            },
            failure="Failed to save registration details",
        )

        self.saved_registration = values
        self.pricing = breakdown.as_record()
        self.confirm_open = False
        self._advance(PaymentStep.PAYMENT_CONFIRMATION)
        return breakdown

    # ── Step 1: payment confirmation ─────────────────────────────────────────

    def acknowledge(self, accepted: bool = True) -> None:
        """Consent that all payments are non-refundable."""
        self._require_step(PaymentStep.PAYMENT_CONFIRMATION)
        self.acknowledged = accepted

    def set_confirmation_field(self, name: str, value: Any) -> None:
        self._require_step(PaymentStep.PAYMENT_CONFIRMATION)
        self._require_ack()
        if name not in CONFIRMATION_FIELDS:
            raise ValidationFailed([f"Unknown field: {name}"])
        if name == "need_invoice":
            self.confirmation_form[name] = bool(value)
            return
        clean = clean_transaction_number if name == "transaction_number" else clean_order_number
        try:
            self.confirmation_form[name] = clean(value) or ""
        except ValueError as exc:
            raise ValidationFailed([str(exc)]) from exc

    async def upload_proof(self, uploader: ProofUploader, file: ProofFile) -> str:
        self._require_step(PaymentStep.PAYMENT_CONFIRMATION)
        self._require_ack()
        country_key = self._require_country()

        path_hint = build_proof_path(country_key, file.file_name, self.clock())
        try:
            url = await uploader.upload(file, path_hint)
        except UploadFailed:
            raise
        except Exception as exc:
            logger.warning("Proof upload for %s failed: %s", country_key, exc)
            raise UploadFailed("Failed to upload file") from exc

        self.confirmation_form["proof_of_payment_url"] = url
        return url

    async def submit_payment_confirmation(self, store: DocumentStore) -> PriceBreakdown:
        """Persist the payment evidence and wait for verification."""
        self._require_step(PaymentStep.PAYMENT_CONFIRMATION)
        self._require_ack()
        country_key = self._require_country()

        try:
            confirmation = PaymentConfirmationData(**self.confirmation_form)
        except ValidationError as exc:
            raise ValidationFailed(error_messages(exc)) from exc

        values = confirmation.model_dump(mode="json")
        breakdown = self.preview()

        await self._persist(
            store,
            country_key,
            {
                "confirmation": values,
                "pricing": breakdown.as_record(),
                "step": PaymentStep.WAITING_FOR_VERIFICATION,
            },
            failure="Failed to submit payment",
        )

        self.saved_confirmation = values
        self.pricing = breakdown.as_record()
        self._advance(PaymentStep.WAITING_FOR_VERIFICATION)
        return breakdown

    # ── Step 2 → 3 and navigation ────────────────────────────────────────────

    def finish(self) -> None:
        self._require_step(PaymentStep.WAITING_FOR_VERIFICATION)
        self._advance(PaymentStep.PAYMENT_COMPLETED)

    def go_back(self) -> None:
        if self.step == PaymentStep.REGISTRATION_DETAIL:
            raise InvalidTransition("Already at the first step")
        self.confirm_open = False
        self.step -= 1

    def go_forward(self) -> None:
        if self.step >= self.reached_step:
            raise InvalidTransition("Complete the current step first")
        self.confirm_open = False
        self.step += 1

    # ── FSM storage ──────────────────────────────────────────────────────────

    def to_data(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "reached_step": self.reached_step,
            "form": dict(self.form),
            "confirmation_form": dict(self.confirmation_form),
            "saved_registration": self.saved_registration,
            "saved_confirmation": self.saved_confirmation,
            "pricing": self.pricing,
            "acknowledged": self.acknowledged,
            "confirm_open": self.confirm_open,
        }

    @classmethod
    def from_data(
        cls,
        data: dict[str, Any],
        principal: Principal,
        config: PricingConfig,
        clock: Clock = utc_now,
    ) -> "PaymentWorkflow":
        wf = cls(principal, config, clock)
        wf.step = data.get("step", PaymentStep.REGISTRATION_DETAIL)
        wf.reached_step = data.get("reached_step", wf.step)
        wf.form = {**wf.form, **data.get("form", {})}
        wf.confirmation_form = {**wf.confirmation_form, **data.get("confirmation_form", {})}
        wf.saved_registration = data.get("saved_registration")
        wf.saved_confirmation = data.get("saved_confirmation")
        wf.pricing = data.get("pricing")
        wf.acknowledged = data.get("acknowledged", False)
        wf.confirm_open = data.get("confirm_open", False)
        wf.refresh_derived()
        return wf

    # ── Internals ────────────────────────────────────────────────────────────

    def _require_step(self, step: int) -> None:
        if self.step != step:
            raise InvalidTransition(
                f"Not available at this step ({PaymentStep.LABELS.get(self.step, self.step)})"
            )

    def _require_ack(self) -> None:
        if not self.acknowledged:
            raise InvalidTransition("Please confirm that all payments are non-refundable")

    def _require_country(self) -> str:
        if not self.principal.is_authenticated:
            raise NotAuthenticated()
        if not self.principal.is_country:
            raise InvalidTransition("No country is assigned to this account")
        return self.principal.country_key  # type: ignore[return-value]

    async def _persist(
        self,
        store: DocumentStore,
        country_key: str,
        partial: dict[str, Any],
        failure: str,
    ) -> None:
        if self.submitting:
            raise InvalidTransition("Submission already in progress")
        self.submitting = True
        try:
            await store.set(country_key, partial, merge=True)
        except Exception as exc:
            logger.warning("%s for %s: %s", failure, country_key, exc)
            raise PersistenceFailed(failure) from exc
        finally:
            self.submitting = False

    def _advance(self, step: int) -> None:
        logger.info(
            "Country %s moved to step %d (%s)",
            self.principal.country_key, step, PaymentStep.LABELS[step],
        )
        self.step = step
        self.reached_step = max(self.reached_step, step)
