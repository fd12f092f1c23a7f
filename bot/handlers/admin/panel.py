"""
Admin panel: payments overview, reconciliation and country operators.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject, StateFilter, or_f
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from bot.config import settings
from bot.keyboards import (
    AdminPanelCb, CountryPaymentCb,
    admin_main_menu, payments_list_kb, country_payment_admin_kb,
    admin_cancel_kb, admin_back_kb,
)
from bot.middlewares import IsAdmin
from bot.models.models import PaymentStep
from bot.services import (
    PaymentStore, assign_country, list_country_operators,
    calculate_pricing, load_pricing_config, format_money, with_paid_before,
)
from bot.states import AdminPaymentStates
from bot.validators import CountryKeyData, PaidBeforeData, error_messages

logger = logging.getLogger(__name__)
router = Router(name="admin_panel")
router.callback_query.filter(
    or_f(AdminPanelCb.filter(), CountryPaymentCb.filter()),
    IsAdmin(),
)
router.message.filter(
    or_f(Command("assign", "unassign"), StateFilter(AdminPaymentStates)),
    IsAdmin(),
)


# ── Admin home (back) ─────────────────────────────────────────────────────────

@router.callback_query(AdminPanelCb.filter(F.action == "back"))
async def cq_admin_home(callback: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await callback.message.edit_text(
        f"⚡ *{settings.EVENT_NAME}* — Admin panel\n\nChoose a section:",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=admin_main_menu(),
    )
    await callback.answer()


# ── Payments overview ─────────────────────────────────────────────────────────

@router.callback_query(AdminPanelCb.filter(F.action == "payments"))
async def cq_payments(callback: CallbackQuery, session: AsyncSession, state: FSMContext) -> None:
    await state.clear()
    records = await PaymentStore(session).list_all()
    if not records:
        await callback.message.edit_text(
            "💰 *Payments*\n\n_No country has saved its registration yet._",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=admin_back_kb(),
        )
        await callback.answer()
        return

    waiting = sum(1 for r in records if r.step == PaymentStep.WAITING_FOR_VERIFICATION)
    legend = "  ".join(f"{PaymentStep.EMOJI[s]} {PaymentStep.LABELS[s]}" for s in PaymentStep.ALL[:3])
    text = (
        f"💰 *Payments* — `{len(records)}` countries, `{waiting}` waiting for verification\n\n"
        f"{legend}"
    )
    await callback.message.edit_text(
        text,
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=payments_list_kb(records),
    )
    await callback.answer()


def render_country_payment(country_key: str, document: dict) -> str:
    reg     = document.get("registration") or {}
    conf    = document.get("confirmation") or {}
    pricing = document.get("pricing") or {}
    step    = document.get("step", PaymentStep.REGISTRATION_DETAIL)
    currency = settings.CURRENCY

    def money(key: str) -> str:
        value = pricing.get(key)
        return f"`{format_money(value, currency)}`" if value is not None else "—"

    lines = [
        f"🌍 `{country_key}`",
        f"{PaymentStep.EMOJI.get(step, '❓')} {PaymentStep.LABELS.get(step, step)}",
        "",
        f"Plan: {reg.get('plan', '—')}",
        f"Country status: {reg.get('country_status', '—')}",
        f"Teams: {reg.get('number_of_teams', '—')}",
        f"Observers: {reg.get('additional_observers', '—')}",
        f"Single rooms: {reg.get('single_room_requests', '—')}",
        "",
        f"Subtotal: {money('subtotal')}",
        f"Paid before: `{format_money(reg.get('paid_before') or 0, currency)}`",
        f"Total (bank): {money('totalBank')}",
    ]
    if conf:
        tx    = str(conf.get("transaction_number") or "—").replace("`", "'")
        order = str(conf.get("order_number") or "—").replace("`", "'")
        lines += [
            "",
            f"Transaction: `{tx}`",
            f"Order: `{order}`",
            f"Need invoice: {'yes' if conf.get('need_invoice') else 'no'}",
            f"Proof: `{conf.get('proof_of_payment_url') or '—'}`",
        ]
    updated_at = document.get("updated_at")
    if updated_at:
        lines += ["", f"_Updated {updated_at.strftime('%Y-%m-%d %H:%M')} UTC_"]
    return "\n".join(lines)


@router.callback_query(CountryPaymentCb.filter(F.action == "view"))
async def cq_country_payment(
    callback: CallbackQuery,
    callback_data: CountryPaymentCb,
    session: AsyncSession,
    state: FSMContext,
) -> None:
    await state.clear()
    document = await PaymentStore(session).get(callback_data.country)
    if document is None:
        await callback.answer("Payment record not found.", show_alert=True)
        return

    await callback.message.edit_text(
        render_country_payment(callback_data.country, document),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=country_payment_admin_kb(callback_data.country),
    )
    await callback.answer()


# ── Reconciliation: amount paid before ────────────────────────────────────────

@router.callback_query(CountryPaymentCb.filter(F.action == "paid_before"))
async def cq_paid_before(
    callback: CallbackQuery,
    callback_data: CountryPaymentCb,
    state: FSMContext,
) -> None:
    await state.set_state(AdminPaymentStates.enter_paid_before)
    await state.update_data(country_key=callback_data.country)
    await callback.message.edit_text(
        f"💵 Send the amount `{callback_data.country}` has already paid ({settings.CURRENCY}):",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=admin_cancel_kb(callback_data.country),
    )
    await callback.answer()


@router.message(AdminPaymentStates.enter_paid_before, F.text)
async def msg_paid_before(message: Message, session: AsyncSession, state: FSMContext) -> None:
    data = await state.get_data()
    country_key = data.get("country_key")
    try:
        amount = PaidBeforeData(amount=message.text.strip().replace(",", ".")).amount
    except ValidationError as exc:
        await message.answer(
            "⚠️ " + "; ".join(error_messages(exc)) + "\nTry again:",
            reply_markup=admin_cancel_kb(country_key),
            parse_mode=None,
        )
        return

    store = PaymentStore(session)
    document = await store.get(country_key)
    if not document or not document.get("registration"):
        await state.clear()
        await message.answer("⚠️ This country has no saved registration yet.", reply_markup=admin_back_kb())
        return

    registration = {**document["registration"], "paid_before": str(amount)}
    if document.get("pricing"):
        pricing = with_paid_before(document["pricing"], amount)
    else:
        # Price as of the last save, not as of today
        pricing = calculate_pricing(
            registration, load_pricing_config(settings), document.get("updated_at"),
        ).as_record()
    await store.set(country_key, {"registration": registration, "pricing": pricing})
    logger.info("Admin %d set paid_before=%s for %s", message.from_user.id, amount, country_key)

    await state.clear()
    await message.answer(
        render_country_payment(country_key, await store.get(country_key)),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=country_payment_admin_kb(country_key),
    )


# ── Country operators ─────────────────────────────────────────────────────────

@router.callback_query(AdminPanelCb.filter(F.action == "operators"))
async def cq_operators(callback: CallbackQuery, session: AsyncSession) -> None:
    operators = await list_country_operators(session)
    lines = ["👥 *Country operators*\n"]
    if operators:
        for u in operators:
            lines.append(f"`{u.country_key}` — {_plain(u.display_name)} (`{u.telegram_id}`)")
    else:
        lines.append("_No operators assigned yet._")
    lines += [
        "",
        "Assign: `/assign <telegram_id> <country_key>`",
        "Remove: `/unassign <telegram_id>`",
    ]
    await callback.message.edit_text(
        "\n".join(lines),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=admin_back_kb(),
    )
    await callback.answer()


@router.message(Command("assign"))
async def cmd_assign(message: Message, command: CommandObject, session: AsyncSession) -> None:
    args = (command.args or "").split()
    if len(args) != 2 or not args[0].isdigit():
        await message.answer("Usage: `/assign <telegram_id> <country_key>`", parse_mode=ParseMode.MARKDOWN)
        return

    try:
        country_key = CountryKeyData(country_key=args[1]).country_key
    except ValidationError as exc:
        await message.answer("⚠️ " + "; ".join(error_messages(exc)), parse_mode=None)
        return

    telegram_id = int(args[0])
    if not await assign_country(session, telegram_id, country_key):
        await message.answer(
            "⚠️ Unknown user. They must send /start to the bot first."
        )
        return

    logger.info("Admin %d assigned telegram_id=%d to %s", message.from_user.id, telegram_id, country_key)
    await message.answer(
        f"✅ `{telegram_id}` now operates `{country_key}`.",
        parse_mode=ParseMode.MARKDOWN,
    )


@router.message(Command("unassign"))
async def cmd_unassign(message: Message, command: CommandObject, session: AsyncSession) -> None:
    arg = (command.args or "").strip()
    if not arg.isdigit():
        await message.answer("Usage: `/unassign <telegram_id>`", parse_mode=ParseMode.MARKDOWN)
        return

    if not await assign_country(session, int(arg), None):
        await message.answer("⚠️ Unknown user.")
        return

    logger.info("Admin %d removed the country of telegram_id=%s", message.from_user.id, arg)
    await message.answer(f"✅ `{arg}` no longer operates a country.", parse_mode=ParseMode.MARKDOWN)
