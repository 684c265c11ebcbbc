class PaymentError(Exception):
    """Base class for payment and receipt numbering errors."""


class InvalidAmount(PaymentError):
    pass


class NotFound(PaymentError):
    pass


class ReservationFailure(PaymentError):
    """The receipt counter could not be persisted."""


class ConfigMissing(PaymentError):
    """No settings row exists for the school."""


class SettingsError(PaymentError):
    """A settings patch was rejected."""
