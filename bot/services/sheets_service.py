"""
Google Sheets export service.

Exports the per-country payment overview to a Google Spreadsheet using
gspread-asyncio 2.0.0 (wraps gspread 6.x) for non-blocking I/O.

Sheet layout
------------
Row 1: Event title
Row 2: Export timestamp
Row 3: blank
Row 4: Column headers
Row 5…: One row per country (countries awaiting verification highlighted)
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from bot.config import settings
from bot.models.models import CountryPayment, PaymentStep

logger = logging.getLogger(__name__)

# ── Colour palette (RGB 0-1 float for Sheets API) ────────────────────────────
COLOUR = {
    "header_bg":  {"red": 0.176, "green": 0.310, "blue": 0.576},
    "header_fg":  {"red": 1.0,   "green": 1.0,   "blue": 1.0},
    "waiting_bg": {"red": 1.0,   "green": 0.949, "blue": 0.800},
}

HEADERS = [
    "Country", "Step", "Plan", "Country status", "Teams", "Observers",
    "Single rooms", "Subtotal", "Paid before", "Total (bank)",
    "Transaction number", "Order number", "Need invoice", "Proof of payment",
    "Updated at",
]

SHEET_TITLE = "Payments"


async def export_payments_to_sheets(records: List[CountryPayment]) -> Optional[str]:
    """
    Rewrite the payments worksheet with the current state of every country.
    Returns the spreadsheet URL on success, None if Sheets is not configured.
    """
    if not settings.sheets_enabled:
        logger.warning("Google Sheets export requested but not configured.")
        return None

    import gspread
    import gspread_asyncio
    from google.oauth2.service_account import Credentials

    creds_info = settings.google_credentials
    scopes = [
        "https://spreadsheets.google.com/feeds",
        "https://www.googleapis.com/auth/drive",
    ]

    def _make_credentials():
        return Credentials.from_service_account_info(creds_info, scopes=scopes)

    agcm = gspread_asyncio.AsyncioGspreadClientManager(_make_credentials)
    agc  = await agcm.authorize()

    spreadsheet = await agc.open_by_key(settings.GOOGLE_SPREADSHEET_ID)

    try:
        worksheet = await spreadsheet.worksheet(SHEET_TITLE)
        await worksheet.clear()
    except gspread.exceptions.WorksheetNotFound:
        worksheet = await spreadsheet.add_worksheet(
            title=SHEET_TITLE, rows=max(300, len(records) + 10), cols=len(HEADERS)
        )

    # In gspread-asyncio 2.0.0 the underlying sync object is at .ws
    sheet_id = worksheet.ws.id

    all_rows: list[list] = [
        [f"{settings.EVENT_NAME}  |  Payments"],
        [f"Export: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC"],
        [],
        HEADERS,
    ]
    format_requests: list[dict] = [
        _fmt_range(sheet_id, 4, 1, 4, len(HEADERS),
                   bg=COLOUR["header_bg"], fg=COLOUR["header_fg"], bold=True)
    ]

    current_row = 5  # 1-indexed
    for record in records:
        all_rows.append(build_payment_row(record))
        if record.step == PaymentStep.WAITING_FOR_VERIFICATION:
            format_requests.append(
                _fmt_range(sheet_id, current_row, 1, current_row, len(HEADERS),
                           bg=COLOUR["waiting_bg"])
            )
        current_row += 1

    # gspread 6.x: update(values, range_name)
    await worksheet.update(all_rows, "A1")

    try:
        await spreadsheet.batch_update({"requests": format_requests})
    except Exception as fmt_err:
        logger.warning("Could not apply formatting: %s", fmt_err)

    return f"https://docs.google.com/spreadsheets/d/{settings.GOOGLE_SPREADSHEET_ID}"


# ── Helpers ───────────────────────────────────────────────────────────────────

def build_payment_row(record: CountryPayment) -> list:
    reg     = record.registration or {}
    conf    = record.confirmation or {}
    pricing = record.pricing or {}

    def _num(value):
        return value if value is not None else "—"

    return [
        record.country_key,
        PaymentStep.LABELS.get(record.step, str(record.step)),
        reg.get("plan", "—"),
        reg.get("country_status", "—"),
        _num(reg.get("number_of_teams")),
        _num(reg.get("additional_observers")),
        _num(reg.get("single_room_requests")),
        _num(pricing.get("subtotal")),
        _num(pricing.get("paid_before", reg.get("paid_before"))),
        _num(pricing.get("totalBank")),
        conf.get("transaction_number") or "—",
        conf.get("order_number") or "—",
        ("Yes" if conf.get("need_invoice") else "No") if conf else "—",
        conf.get("proof_of_payment_url") or "—",
        record.updated_at.strftime("%Y-%m-%d %H:%M") if record.updated_at else "—",
    ]


def _fmt_range(
    sheet_id: int,
    start_row: int,
    start_col: int,
    end_row: int,
    end_col: int,
    bg: Optional[dict] = None,
    fg: Optional[dict] = None,
    bold: bool = False,
) -> dict:
    """Build a Sheets API repeatCell request dict."""
    fmt: dict = {}
    if bg:
        fmt["backgroundColor"] = bg
    if fg or bold:
        fmt["textFormat"] = {}
        if fg:
            fmt["textFormat"]["foregroundColor"] = fg
        if bold:
            fmt["textFormat"]["bold"] = True

    return {
        "repeatCell": {
            "range": {
                "sheetId":          sheet_id,
                "startRowIndex":    start_row - 1,
                "endRowIndex":      end_row,
                "startColumnIndex": start_col - 1,
                "endColumnIndex":   end_col,
            },
            "cell": {"userEnteredFormat": fmt},
            "fields": "userEnteredFormat(backgroundColor,textFormat)",
        }
    }
