from django.core.exceptions import ImproperlyConfigured


class CheckoutError(Exception):
    """Base class for checkout and fulfillment exceptions."""

    code = "internal_error"


class CheckoutValidationError(CheckoutError):
    """Bad input (missing address, unknown currency). No side effects were made."""

    code = "validation_error"


class AmountTooSmall(CheckoutValidationError):
    """The settlement amount rounds below the gateway's minimum payable unit."""

    code = "amount_too_small"

    def __init__(self, amount_minor: int, minimum_minor: int, currency: str):
        self.amount_minor = amount_minor
        self.minimum_minor = minimum_minor
        self.currency = currency
        super().__init__(
            f"Settlement amount {amount_minor} {currency} minor units is below the minimum of {minimum_minor}"
        )


class ConflictError(CheckoutError):
    """The product is no longer sellable, or the order already left the state the caller expected."""

    code = "conflict"


class UpstreamUnavailable(CheckoutError):
    """Gateway, carrier or rate source could not be reached."""

    code = "upstream_unavailable"


class PaymentSecurityError(CheckoutError):
    """A payment callback failed signature verification."""

    code = "signature_invalid"


class ConfigurationError(CheckoutError, ImproperlyConfigured):
    """Credentials or settlement configuration missing. Raised at startup only."""

    code = "configuration_error"


class UnsupportedCurrency(CheckoutValidationError):
    """No exchange rate is known for the currency."""

    code = "unsupported_currency"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"No exchange rate available for currency '{currency}'")
