"""
Receipt Validator - Apple App Store and Google Play subscription receipts
delivered by Unity IAP.
"""

from receipt_validator.exceptions import (
    AuthError,
    ConfigError,
    MissingCredentialError,
    ParseError,
    ReceiptValidationError,
    StoreRejectedError,
    TransportError,
    UnsupportedPurchaseError,
)
from receipt_validator.models import (
    AppleResponse,
    AppleUrls,
    AppleVerification,
    GooglePurchaseReference,
    GoogleServiceAccountKey,
    GoogleSubscriptionPurchase,
    GoogleUrls,
    PurchaseResponse,
    Store,
    UnityPurchaseReceipt,
)
from receipt_validator.services import (
    UnityPurchaseValidator,
    Validator,
    fetch_apple_receipt_data,
    fetch_google_receipt_data,
    validate_apple_subscription,
    validate_google_subscription,
)

__all__ = [
    "AppleResponse",
    "AppleUrls",
    "AppleVerification",
    "AuthError",
    "ConfigError",
    "GooglePurchaseReference",
    "GoogleServiceAccountKey",
    "GoogleSubscriptionPurchase",
    "GoogleUrls",
    "MissingCredentialError",
    "ParseError",
    "PurchaseResponse",
    "ReceiptValidationError",
    "Store",
    "StoreRejectedError",
    "TransportError",
    "UnityPurchaseReceipt",
    "UnityPurchaseValidator",
    "UnsupportedPurchaseError",
    "Validator",
    "fetch_apple_receipt_data",
    "fetch_google_receipt_data",
    "validate_apple_subscription",
    "validate_google_subscription",
]
