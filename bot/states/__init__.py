from bot.states.payment_states import PaymentStates
from bot.states.admin_states import AdminPaymentStates

__all__ = ["PaymentStates", "AdminPaymentStates"]
