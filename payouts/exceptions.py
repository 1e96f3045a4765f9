from rest_framework import status


class PayoutError(Exception):
    """Base class for payout failures surfaced to the caller verbatim."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidStateTransition(PayoutError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, *, action: str, current: str, target: str, payout_id=None):
        self.action = action
        self.current = current
        self.target = target
        self.payout_id = payout_id
        if self.already_in_target:
            message = f"Payout is already {current}"
        else:
            message = f"Cannot {action.replace('_', ' ')} a payout that is {current}"
        super().__init__(message)

    @property
    def already_in_target(self) -> bool:
        return self.current == self.target


class InsufficientBalance(PayoutError):
    def __init__(self, *, requested, available, currency="GHS"):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance. Requested: {currency} {requested:.2f}, "
            f"Available: {currency} {available:.2f}"
        )


class InvalidPayoutAmount(PayoutError):
    pass


class InvalidPayoutAccount(PayoutError):
    pass
