"""
Exception Classes - Strongly typed exception hierarchy.

An expired or inactive purchase is never an exception: it is a successful
validation with ``valid=False``. Only protocol and configuration failures
are raised.
"""


class ReceiptValidationError(Exception):
    """Base exception for all receipt validation errors."""

    pass


class ParseError(ReceiptValidationError):
    """Raised when an input envelope or credential document is malformed."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Parse error in {field}: {message}")


class ConfigError(ReceiptValidationError):
    """Raised when a credential or setting is invalid at setup time."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Configuration error: {message}")


class MissingCredentialError(ReceiptValidationError):
    """Raised when validating for a store whose credential was never configured."""

    def __init__(self, store: str) -> None:
        self.store = store
        super().__init__(f"No credential configured for {store}")


class TransportError(ReceiptValidationError):
    """Raised when a store endpoint cannot be reached or answers garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"Transport error: {message}")


class StoreRejectedError(ReceiptValidationError):
    """Raised when a store explicitly rejects a receipt."""

    def __init__(self, store: str, status: int, is_retryable: bool | None = None) -> None:
        self.store = store
        self.status = status
        self.is_retryable = is_retryable
        super().__init__(f"{store} rejected receipt with status {status}")


class AuthError(ReceiptValidationError):
    """Raised when the Google service account cannot obtain or use an access token."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class UnsupportedPurchaseError(ReceiptValidationError):
    """Raised for purchase types that are not subscriptions."""

    def __init__(self, purchase_type: str) -> None:
        self.purchase_type = purchase_type
        super().__init__(f"Unsupported purchase type: {purchase_type}")
