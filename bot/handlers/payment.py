"""
Country registration & payment flow.

Each inline button maps onto one workflow operation. The workflow itself is
kept in FSM data between updates and re-mounted from the database whenever
the user enters the flow from the main menu.
"""
import logging
from typing import Optional, Union

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import StateFilter, or_f
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from sqlalchemy.ext.asyncio import AsyncSession

from bot.config import settings
from bot.keyboards import MainMenuCb, PaymentCb, cancel_input_kb, step_kb
from bot.middlewares import IsCountry
from bot.models.models import PaymentStep
from bot.services import (
    PaymentStore,
    PaymentWorkflow,
    Principal,
    TelegramProofUploader,
    WorkflowError,
    format_money,
    load_pricing_config,
    proof_file_from_message,
)
from bot.states import PaymentStates

logger = logging.getLogger(__name__)
router = Router(name="payment")
# Only payment updates reach the IsCountry check
router.message.filter(StateFilter(PaymentStates), IsCountry())
router.callback_query.filter(
    or_f(PaymentCb.filter(), MainMenuCb.filter(F.action == "payment")),
    IsCountry(),
)


# ── Workflow persistence in FSM ───────────────────────────────────────────────

async def _mount_workflow(
    state: FSMContext, session: AsyncSession, principal: Principal
) -> PaymentWorkflow:
    wf = PaymentWorkflow(principal, load_pricing_config(settings))
    await wf.mount(PaymentStore(session))
    await _store_workflow(state, wf)
    return wf


async def _load_workflow(
    event: Union[CallbackQuery, Message],
    state: FSMContext,
    session: AsyncSession,
    principal: Principal,
) -> Optional[PaymentWorkflow]:
    """
    Workflow kept in FSM data, re-mounted from the database when the data is
    gone (e.g. a button pressed after a restart). Returns None after telling
    the user why the workflow could not be mounted.
    """
    data = await state.get_data()
    if "workflow" in data:
        return PaymentWorkflow.from_data(data["workflow"], principal, load_pricing_config(settings))
    try:
        return await _mount_workflow(state, session, principal)
    except WorkflowError as exc:
        if isinstance(event, CallbackQuery):
            await _fail(event, exc)
        else:
            await event.answer(f"⚠️ {exc}", parse_mode=None)
        return None


async def _store_workflow(state: FSMContext, wf: PaymentWorkflow) -> None:
    await state.update_data(workflow=wf.to_data())


# ── Rendering ─────────────────────────────────────────────────────────────────

def _code(value) -> str:
    # legacy Markdown has no escape for backticks inside code spans
    return "`" + str(value).replace("`", "'") + "`"


def _money(value) -> str:
    return format_money(value, settings.CURRENCY)


def _pricing_lines(wf: PaymentWorkflow) -> list[str]:
    b = wf.preview()
    lines = [
        "*💰 Pricing*",
        f"First team ({wf.form['plan']} base): {_code(_money(b.plan_base_first_team))}",
        f"Teams ×{wf.form['number_of_teams']}: {_code(_money(b.teams_cost))}",
        f"Observers ×{wf.form['additional_observers']}: {_code(_money(b.observers_cost))}",
        f"Single rooms ×{wf.form['single_room_requests']}: {_code(_money(b.single_rooms_cost))}",
        f"Subtotal: {_code(_money(b.subtotal))}",
    ]
    if b.paid_before:
        lines.append(f"Paid before: {_code(_money(b.paid_before))}")
    lines.append(f"*Total to transfer:* {_code(_money(b.total_bank))}")
    return lines


def _bank_lines(wf: PaymentWorkflow) -> list[str]:
    lines = [
        "*🏦 Bank transfer*",
        f"Beneficiary: {_code(settings.BANK_BENEFICIARY)}",
        f"Address: {_code(settings.BANK_ADDRESS)}",
        f"IBAN: {_code(settings.BANK_IBAN)}",
        f"Tax ID: {_code(settings.BANK_TAX_ID)}",
        f"Bank: {_code(settings.BANK_NAME)}",
        f"SWIFT: {_code(settings.BANK_SWIFT)}",
        f"Reference: {_code(f'{settings.EVENT_NAME} {wf.principal.country_key}')}",
    ]
    if settings.INVOICE_EMAIL:
        lines.append(f"Invoices: {_code(settings.INVOICE_EMAIL)}")
    return lines


def render_step(wf: PaymentWorkflow) -> str:
    header = (
        f"💳 *{settings.EVENT_NAME}* · {_code(wf.principal.country_key)}\n"
        f"{PaymentStep.EMOJI[wf.step]} Step {wf.step + 1}/{len(PaymentStep.ALL)}: "
        f"*{PaymentStep.LABELS[wf.step]}*\n"
    )
    lines = [header]

    if wf.step == PaymentStep.REGISTRATION_DETAIL:
        lines += [
            f"Plan: *{wf.form['plan']}*",
            f"Country status: *{wf.form['country_status']}*",
            "",
        ]
        lines += _pricing_lines(wf)
        if wf.confirm_open:
            lines += ["", "❓ *Upload these registration details?*"]

    elif wf.step == PaymentStep.PAYMENT_CONFIRMATION:
        lines += _pricing_lines(wf)
        lines += [""] + _bank_lines(wf)
        if not wf.acknowledged:
            lines += ["", "Please confirm that all payments are non-refundable to continue."]
        else:
            conf = wf.confirmation_form
            lines += [
                "",
                f"Transaction number: {_code(conf['transaction_number'] or '—')}",
                f"Order number: {_code(conf['order_number'] or '—')}",
                f"Need invoice: {'yes' if conf['need_invoice'] else 'no'}",
                f"Proof of payment: {'attached ✅' if conf['proof_of_payment_url'] else 'missing'}",
            ]

    elif wf.step == PaymentStep.WAITING_FOR_VERIFICATION:
        lines += _pricing_lines(wf)
        conf = wf.saved_confirmation or wf.confirmation_form
        lines += [
            "",
            f"Transaction number: {_code(conf.get('transaction_number') or '—')}",
            f"Order number: {_code(conf.get('order_number') or '—')}",
            "",
            "⏳ Your payment is waiting for verification by the organisers.",
        ]

    else:
        lines.append("✅ Thank you! Your registration payment is complete.")

    return "\n".join(lines)


async def _edit(message: Message, text: str, kb: Optional[InlineKeyboardMarkup]) -> None:
    try:
        await message.edit_text(text, parse_mode=ParseMode.MARKDOWN, reply_markup=kb)
    except TelegramBadRequest as exc:
        # "message is not modified" on repeated taps
        logger.debug("Edit skipped: %s", exc)


async def _show(callback: CallbackQuery, wf: PaymentWorkflow) -> None:
    await _edit(callback.message, render_step(wf), step_kb(wf))


async def _fail(callback: CallbackQuery, exc: WorkflowError) -> None:
    await callback.answer(f"⚠️ {exc}"[:200], show_alert=True)


# ── Entry ─────────────────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "payment"))
async def cq_payment_entry(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    await state.clear()
    try:
        wf = await _mount_workflow(state, session, principal)
    except WorkflowError as exc:
        await _fail(callback, exc)
        return
    await state.set_state(PaymentStates.workflow)
    await _show(callback, wf)
    await callback.answer()


@router.callback_query(PaymentCb.filter(F.action == "refresh"))
async def cq_refresh(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    await state.set_state(PaymentStates.workflow)
    await _show(callback, wf)
    await callback.answer()


# ── Step 0: registration detail ───────────────────────────────────────────────

@router.callback_query(PaymentCb.filter(F.action.in_({"inc", "dec", "teams"})))
async def cq_edit_field(
    callback: CallbackQuery,
    callback_data: PaymentCb,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    try:
        if callback_data.action == "teams":
            wf.set_field("number_of_teams", callback_data.value)
        else:
            delta = 1 if callback_data.action == "inc" else -1
            wf.increment(callback_data.field, delta)
    except WorkflowError as exc:
        await _fail(callback, exc)
        return

    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()


@router.callback_query(PaymentCb.filter(F.action == "save"))
async def cq_request_save(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    try:
        wf.request_save()
    except WorkflowError as exc:
        await _fail(callback, exc)
        return

    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()


@router.callback_query(PaymentCb.filter(F.action == "cancel"))
async def cq_cancel_save(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    wf.cancel_save()
    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()


@router.callback_query(PaymentCb.filter(F.action == "confirm"))
async def cq_confirm_save(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    # Buttons stay hidden while the write is in flight
    await _edit(callback.message, render_step(wf) + "\n\n⏳ Saving…", None)
    try:
        await wf.save_registration_details(PaymentStore(session))
    except WorkflowError as exc:
        await _fail(callback, exc)
        await _show(callback, wf)
        return

    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer("✅ Registration details saved.")


# ── Step 1: payment confirmation ──────────────────────────────────────────────

@router.callback_query(PaymentCb.filter(F.action == "ack"))
async def cq_acknowledge(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    try:
        wf.acknowledge(not wf.acknowledged)
    except WorkflowError as exc:
        await _fail(callback, exc)
        return
    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()


@router.callback_query(PaymentCb.filter(F.action == "invoice"))
async def cq_toggle_invoice(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    try:
        wf.set_confirmation_field("need_invoice", not wf.confirmation_form["need_invoice"])
    except WorkflowError as exc:
        await _fail(callback, exc)
        return
    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()


_PROMPTS = {
    "txn":   (PaymentStates.enter_transaction_number, "✏️ Send the bank *transaction / reference number*:"),
    "order": (PaymentStates.enter_order_number,       "✏️ Send the *order number* (or `-` to clear it):"),
    "proof": (PaymentStates.upload_proof,             "📎 Send the *proof of payment* as a photo, image or PDF:"),
}


@router.callback_query(PaymentCb.filter(F.action.in_(set(_PROMPTS))))
async def cq_prompt_input(
    callback: CallbackQuery,
    callback_data: PaymentCb,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    if wf.step != PaymentStep.PAYMENT_CONFIRMATION or not wf.acknowledged:
        await callback.answer("⚠️ Please confirm that all payments are non-refundable.", show_alert=True)
        return

    new_state, prompt = _PROMPTS[callback_data.action]
    await state.set_state(new_state)
    await _edit(callback.message, prompt, cancel_input_kb())
    await callback.answer()


async def _after_input(message: Message, state: FSMContext, wf: PaymentWorkflow) -> None:
    await _store_workflow(state, wf)
    await state.set_state(PaymentStates.workflow)
    await message.answer(render_step(wf), parse_mode=ParseMode.MARKDOWN, reply_markup=step_kb(wf))


@router.message(PaymentStates.enter_transaction_number, F.text)
async def msg_transaction_number(
    message: Message,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(message, state, session, principal)
    if wf is None:
        return
    try:
        wf.set_confirmation_field("transaction_number", message.text)
    except WorkflowError as exc:
        await message.answer(f"⚠️ {exc}. Try again:", parse_mode=None, reply_markup=cancel_input_kb())
        return
    await _after_input(message, state, wf)


@router.message(PaymentStates.enter_order_number, F.text)
async def msg_order_number(
    message: Message,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(message, state, session, principal)
    if wf is None:
        return
    value = message.text.strip()
    try:
        wf.set_confirmation_field("order_number", "" if value == "-" else value)
    except WorkflowError as exc:
        await message.answer(f"⚠️ {exc}. Try again:", parse_mode=None, reply_markup=cancel_input_kb())
        return
    await _after_input(message, state, wf)


@router.message(PaymentStates.upload_proof, F.photo | F.document)
async def msg_upload_proof(
    message: Message,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(message, state, session, principal)
    if wf is None:
        return
    proof = proof_file_from_message(message)
    uploader = TelegramProofUploader(message.bot, settings.UPLOAD_DIR, settings.PROOF_BASE_URL)

    progress = await message.answer("⏳ Uploading…")
    try:
        await wf.upload_proof(uploader, proof)
    except WorkflowError as exc:
        await progress.edit_text(
            f"❌ {exc}. Send the file again:", parse_mode=None, reply_markup=cancel_input_kb()
        )
        return

    await progress.edit_text("✅ Proof of payment uploaded.")
    await _after_input(message, state, wf)


@router.message(PaymentStates.upload_proof)
async def msg_upload_proof_invalid(message: Message) -> None:
    await message.answer("⚠️ Please send a photo, an image or a PDF file.", reply_markup=cancel_input_kb())


@router.callback_query(PaymentCb.filter(F.action == "submit"))
async def cq_submit_payment(
    callback: CallbackQuery,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    await _edit(callback.message, render_step(wf) + "\n\n⏳ Submitting…", None)
    try:
        await wf.submit_payment_confirmation(PaymentStore(session))
    except WorkflowError as exc:
        await _fail(callback, exc)
        await _show(callback, wf)
        return

    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer("✅ Payment submitted.")


# ── Step 2 → 3 and navigation ─────────────────────────────────────────────────

@router.callback_query(PaymentCb.filter(F.action.in_({"finish", "prev", "next"})))
async def cq_navigate(
    callback: CallbackQuery,
    callback_data: PaymentCb,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    wf = await _load_workflow(callback, state, session, principal)
    if wf is None:
        return
    try:
        if callback_data.action == "finish":
            wf.finish()
        elif callback_data.action == "prev":
            wf.go_back()
        else:
            wf.go_forward()
    except WorkflowError as exc:
        await _fail(callback, exc)
        return

    await _store_workflow(state, wf)
    await _show(callback, wf)
    await callback.answer()
