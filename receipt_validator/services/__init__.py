"""
Store backends and the validator facade.
"""

from receipt_validator.services.apple import fetch_apple_receipt_data, validate_apple_subscription
from receipt_validator.services.google import (
    fetch_google_receipt_data,
    validate_google_subscription,
)
from receipt_validator.services.google_auth import GoogleServiceAccountAuthenticator
from receipt_validator.services.validator import UnityPurchaseValidator, Validator

__all__ = [
    "GoogleServiceAccountAuthenticator",
    "UnityPurchaseValidator",
    "Validator",
    "fetch_apple_receipt_data",
    "fetch_google_receipt_data",
    "validate_apple_subscription",
    "validate_google_subscription",
]
