"""
Keyboards for the country registration & payment flow.
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from bot.keyboards.callbacks import MainMenuCb, PaymentCb
from bot.models.models import PaymentStep
from bot.services.payment_workflow import PaymentWorkflow

FIELD_LABELS = {
    "additional_observers": "Additional observers",
    "single_room_requests": "Single room requests",
}


def _nav_row(builder: InlineKeyboardBuilder, wf: PaymentWorkflow) -> None:
    buttons = []
    if wf.step > PaymentStep.REGISTRATION_DETAIL:
        buttons.append(InlineKeyboardButton(text="◀️ Prev", callback_data=PaymentCb(action="prev").pack()))
    if wf.step < wf.reached_step:
        buttons.append(InlineKeyboardButton(text="Next ▶️", callback_data=PaymentCb(action="next").pack()))
    if buttons:
        builder.row(*buttons)


def _counter_row(builder: InlineKeyboardBuilder, wf: PaymentWorkflow, field: str) -> None:
    builder.row(
        InlineKeyboardButton(text="➖", callback_data=PaymentCb(action="dec", field=field).pack()),
        InlineKeyboardButton(text=f"{FIELD_LABELS[field]}: {wf.form[field]}", callback_data="noop"),
        InlineKeyboardButton(text="➕", callback_data=PaymentCb(action="inc", field=field).pack()),
    )


def registration_detail_kb(wf: PaymentWorkflow) -> InlineKeyboardMarkup:
    """Step 0: editable registration detail."""
    builder = InlineKeyboardBuilder()

    teams = wf.form["number_of_teams"]
    team_buttons = [
        InlineKeyboardButton(
            text=f"{'🔘' if teams == 1 else '⚪️'} 1 team",
            callback_data=PaymentCb(action="teams", value=1).pack(),
        )
    ]
    if wf.max_teams == 2:
        team_buttons.append(
            InlineKeyboardButton(
                text=f"{'🔘' if teams == 2 else '⚪️'} 2 teams",
                callback_data=PaymentCb(action="teams", value=2).pack(),
            )
        )
    builder.row(*team_buttons)

    _counter_row(builder, wf, "additional_observers")
    _counter_row(builder, wf, "single_room_requests")

    builder.row(InlineKeyboardButton(text="💾 Save", callback_data=PaymentCb(action="save").pack()))
    _nav_row(builder, wf)
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()


def confirm_registration_kb() -> InlineKeyboardMarkup:
    """Confirmation dialog before the registration detail is saved."""
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="✅ Yes, upload", callback_data=PaymentCb(action="confirm").pack()),
        InlineKeyboardButton(text="❌ Cancel",      callback_data=PaymentCb(action="cancel").pack()),
    )
    return builder.as_markup()


def payment_confirmation_kb(wf: PaymentWorkflow) -> InlineKeyboardMarkup:
    """Step 1: consent, then the payment evidence form."""
    builder = InlineKeyboardBuilder()
    ack_mark = "☑️" if wf.acknowledged else "⬜️"
    builder.row(
        InlineKeyboardButton(
            text=f"{ack_mark} I consent that all payments are non-refundable",
            callback_data=PaymentCb(action="ack").pack(),
        )
    )

    if wf.acknowledged:
        conf = wf.confirmation_form
        txn_mark   = "✅" if conf["transaction_number"] else "✏️"
        order_mark = "✅" if conf["order_number"] else "✏️"
        proof_mark = "✅" if conf["proof_of_payment_url"] else "📎"
        inv_mark   = "☑️" if conf["need_invoice"] else "⬜️"
        builder.row(InlineKeyboardButton(
            text=f"{txn_mark} Transaction/Reference number *",
            callback_data=PaymentCb(action="txn").pack(),
        ))
        builder.row(InlineKeyboardButton(
            text=f"{order_mark} Order number",
            callback_data=PaymentCb(action="order").pack(),
        ))
        builder.row(InlineKeyboardButton(
            text=f"{proof_mark} Proof of payment *",
            callback_data=PaymentCb(action="proof").pack(),
        ))
        builder.row(InlineKeyboardButton(
            text=f"{inv_mark} Need invoice",
            callback_data=PaymentCb(action="invoice").pack(),
        ))
        builder.row(InlineKeyboardButton(
            text="📨 Submit payment",
            callback_data=PaymentCb(action="submit").pack(),
        ))

    _nav_row(builder, wf)
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()


def waiting_kb(wf: PaymentWorkflow) -> InlineKeyboardMarkup:
    """Step 2: read-only summary."""
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🏁 Finish", callback_data=PaymentCb(action="finish").pack()))
    _nav_row(builder, wf)
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()


def completed_kb(wf: PaymentWorkflow) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    _nav_row(builder, wf)
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()


def cancel_input_kb() -> InlineKeyboardMarkup:
    """Shown under text / file prompts; returns to the step screen."""
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=PaymentCb(action="refresh").pack()))
    return builder.as_markup()


def step_kb(wf: PaymentWorkflow) -> InlineKeyboardMarkup:
    if wf.step == PaymentStep.REGISTRATION_DETAIL:
        if wf.confirm_open:
            return confirm_registration_kb()
        return registration_detail_kb(wf)
    if wf.step == PaymentStep.PAYMENT_CONFIRMATION:
        return payment_confirmation_kb(wf)
    if wf.step == PaymentStep.WAITING_FOR_VERIFICATION:
        return waiting_kb(wf)
    return completed_kb(wf)
