from aiogram.fsm.state import State, StatesGroup


class PaymentStates(StatesGroup):
    """FSM for the country registration & payment flow."""
    workflow                 = State()  # Step screens driven by inline buttons
    enter_transaction_number = State()  # Text input: bank reference
    enter_order_number       = State()  # Text input: optional order number
    upload_proof             = State()  # Photo / document: proof of payment
