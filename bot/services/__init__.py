from bot.services.identity_service import (
    Role, Principal, ANONYMOUS,
    upsert_user, get_user, assign_country, list_country_operators, resolve_principal,
)
from bot.services.pricing_service import (
    Plan, CountryStatus, PricingConfig, PriceBreakdown,
    calculate_pricing, decide_plan, decide_country_status, months_late,
    first_team_fee, load_pricing_config, format_money, utc_now, with_paid_before,
)
from bot.services.payment_store import PaymentStore
from bot.services.payment_workflow import PaymentWorkflow
from bot.services.upload_service import (
    ProofFile, TelegramProofUploader, build_proof_path, proof_file_from_message,
)
from bot.services.errors import (
    WorkflowError, ValidationFailed, NotAuthenticated,
    PersistenceFailed, UploadFailed, InvalidTransition,
)
from bot.services.sheets_service import export_payments_to_sheets

__all__ = [
    # identity
    "Role", "Principal", "ANONYMOUS",
    "upsert_user", "get_user", "assign_country", "list_country_operators",
    "resolve_principal",
    # pricing engine
    "Plan", "CountryStatus", "PricingConfig", "PriceBreakdown",
    "calculate_pricing", "decide_plan", "decide_country_status", "months_late",
    "first_team_fee", "load_pricing_config", "format_money", "utc_now", "with_paid_before",
    # document store
    "PaymentStore",
    # workflow
    "PaymentWorkflow",
    # uploads
    "ProofFile", "TelegramProofUploader", "build_proof_path", "proof_file_from_message",
    # errors
    "WorkflowError", "ValidationFailed", "NotAuthenticated",
    "PersistenceFailed", "UploadFailed", "InvalidTransition",
    # sheets
    "export_payments_to_sheets",
]
