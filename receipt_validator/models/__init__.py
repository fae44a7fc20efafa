"""
Models - Receipt envelope, normalized verdict and store wire schemas.
"""

from receipt_validator.models.apple import (
    AppleReceipt,
    AppleReceiptInfo,
    AppleRenewalInfo,
    AppleResponse,
    AppleUrls,
    AppleVerification,
)
from receipt_validator.models.google import (
    GoogleAccessToken,
    GooglePlayData,
    GooglePurchaseReference,
    GoogleServiceAccountKey,
    GoogleSubscriptionPurchase,
    GoogleUrls,
)
from receipt_validator.models.receipt import PurchaseResponse, Store, UnityPurchaseReceipt

__all__ = [
    "AppleReceipt",
    "AppleReceiptInfo",
    "AppleRenewalInfo",
    "AppleResponse",
    "AppleUrls",
    "AppleVerification",
    "GoogleAccessToken",
    "GooglePlayData",
    "GooglePurchaseReference",
    "GoogleServiceAccountKey",
    "GoogleSubscriptionPurchase",
    "GoogleUrls",
    "PurchaseResponse",
    "Store",
    "UnityPurchaseReceipt",
]
