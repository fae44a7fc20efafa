"""
Apple App Store models for the verifyReceipt endpoint.

Wire schemas are frozen pydantic models using Apple's field names.
Apple sends every timestamp as a string of UNIX epoch milliseconds.

https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from receipt_validator.config import settings

# https://developer.apple.com/documentation/appstorereceipts/status
APPLE_STATUS_VALID = 0
APPLE_STATUS_SANDBOX_RECEIPT = 21007


def parse_millis(value: str | int | None) -> int | None:
    """Parse an epoch-milliseconds value, returning None when absent or garbage."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AppleModel(BaseModel):
    """Base for Apple wire models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class AppleVerifyRequest(AppleModel):
    """requestBody for verifyReceipt."""

    receipt_data: str = Field(..., alias="receipt-data")
    password: str
    exclude_old_transactions: bool = Field(False, alias="exclude-old-transactions")


class AppleReceiptInfo(AppleModel):
    """
    One in-app purchase transaction.

    Used for both ``latest_receipt_info`` and ``receipt.in_app`` entries, which
    share the same fields.
    """

    quantity: str | None = None
    product_id: str | None = None
    transaction_id: str | None = None
    original_transaction_id: str | None = None
    purchase_date_ms: str | None = None
    original_purchase_date_ms: str | None = None
    # Subscription expiry or renewal time
    expires_date_ms: str | None = None
    expires_date: str | None = None
    # Only present for refunded or revoked transactions
    cancellation_date_ms: str | None = None
    cancellation_reason: str | None = None  # "1": app issue, "0": other
    is_trial_period: str | None = None
    is_in_intro_offer_period: str | None = None

    @property
    def expires_at_ms(self) -> int | None:
        return parse_millis(self.expires_date_ms)

    def is_cancelled(self) -> bool:
        """Refunded by Apple support or revoked."""
        return self.cancellation_date_ms is not None


class AppleRenewalInfo(AppleModel):
    """pending_renewal_info entry for an auto-renewable subscription."""

    auto_renew_product_id: str | None = None
    auto_renew_status: str | None = None  # "1": will renew, "0": turned off
    product_id: str | None = None
    original_transaction_id: str | None = None
    expiration_intent: str | None = None
    is_in_billing_retry_period: str | None = None
    grace_period_expires_date_ms: str | None = None

    def will_renew(self) -> bool:
        return self.auto_renew_status == "1"

    def in_grace_period(self, now_ms: int) -> bool:
        """Billing failed but Apple still grants access until the grace period ends."""
        grace_expires = parse_millis(self.grace_period_expires_date_ms)
        return grace_expires is not None and grace_expires > now_ms


class AppleReceipt(AppleModel):
    """The decoded receipt that was sent for verification."""

    bundle_id: str | None = None
    application_version: str | None = None
    in_app: list[AppleReceiptInfo] | None = None

    def get_transaction(self, transaction_id: str) -> AppleReceiptInfo | None:
        for entry in self.in_app or []:
            if entry.transaction_id == transaction_id:
                return entry
        return None


class AppleResponse(AppleModel):
    """responseBody returned by verifyReceipt."""

    # 0 when the receipt is valid, otherwise the error status for the whole receipt
    status: int
    environment: str | None = None  # "Production" or "Sandbox"
    # Only applicable to statuses 21100-21199
    is_retryable: bool | None = Field(None, alias="is-retryable")
    # Only returned for receipts containing auto-renewable subscriptions
    latest_receipt: str | None = None
    latest_receipt_info: list[AppleReceiptInfo] | None = None
    pending_renewal_info: list[AppleRenewalInfo] | None = None
    receipt: AppleReceipt | None = None

    def is_verified(self) -> bool:
        return self.status == APPLE_STATUS_VALID

    def subscription_entries(self) -> list[AppleReceiptInfo]:
        """Subscription transactions, preferring latest_receipt_info over the receipt body."""
        if self.latest_receipt_info:
            return list(self.latest_receipt_info)
        if self.receipt and self.receipt.in_app:
            return [entry for entry in self.receipt.in_app if entry.expires_date_ms is not None]
        return []

    def get_product_id(self, transaction_id: str) -> str | None:
        """Product of the given transaction, looked up in every transaction list."""
        for entry in self.latest_receipt_info or []:
            if entry.transaction_id == transaction_id:
                return entry.product_id
        if self.receipt:
            entry = self.receipt.get_transaction(transaction_id)
            if entry:
                return entry.product_id
        return None

    def get_renewal_info(
        self, product_id: str | None, original_transaction_id: str | None = None
    ) -> AppleRenewalInfo | None:
        """Renewal info for a product, or for the original transaction when the product is unknown."""
        for renewal in self.pending_renewal_info or []:
            if product_id is not None:
                if product_id in (renewal.product_id, renewal.auto_renew_product_id):
                    return renewal
            elif (
                original_transaction_id is not None
                and renewal.original_transaction_id == original_transaction_id
            ):
                return renewal
        return None


@dataclass(frozen=True)
class AppleUrls:
    """
    Production and sandbox verifyReceipt hosts.

    Receipts are verified against production first; only a 21007 status sends
    them to the sandbox.
    """

    production: str = field(default_factory=lambda: settings.apple_production_url)
    sandbox: str = field(default_factory=lambda: settings.apple_sandbox_url)


@dataclass(frozen=True)
class AppleVerification:
    """Raw Apple response plus the environment that verified it."""

    response: AppleResponse
    environment: str
