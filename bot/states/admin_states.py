from aiogram.fsm.state import State, StatesGroup


class AdminPaymentStates(StatesGroup):
    """FSM for admin-side payment reconciliation."""
    enter_paid_before = State()  # Amount already paid in a previous cycle
