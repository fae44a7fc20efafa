"""
Google Play models - service account key, Unity purchase payload and the
purchases.subscriptions resource.

https://developers.google.com/android-publisher/api-ref/rest/v3/purchases.subscriptions
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from receipt_validator.config import settings
from receipt_validator.exceptions import ConfigError, ParseError, UnsupportedPurchaseError

SKU_TYPE_SUBSCRIPTION = "subs"

# paymentState values
PAYMENT_STATE_PENDING = 0
PAYMENT_STATE_RECEIVED = 1
PAYMENT_STATE_FREE_TRIAL = 2
PAYMENT_STATE_DEFERRED = 3
ACTIVE_PAYMENT_STATES = frozenset({PAYMENT_STATE_RECEIVED, PAYMENT_STATE_FREE_TRIAL})

# cancelReason values
CANCEL_REASON_USER = 0
CANCEL_REASON_SYSTEM = 1  # billing problem
CANCEL_REASON_REPLACED = 2  # upgraded or downgraded to a new subscription
CANCEL_REASON_DEVELOPER = 3
# User and developer cancellations only stop renewal; access runs until expiry
REVOKING_CANCEL_REASONS = frozenset({CANCEL_REASON_SYSTEM, CANCEL_REASON_REPLACED})

PURCHASE_TYPE_TEST = 0


class GoogleModel(BaseModel):
    """Base for Google wire models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class GoogleServiceAccountKey(GoogleModel):
    """
    Service account key as downloaded from the Google Cloud console.

    Only client_email, private_key and token_uri are needed to authenticate.
    """

    client_email: str = Field(..., min_length=1)
    private_key: str = Field(..., min_length=1)
    token_uri: str = Field(..., min_length=1)
    private_key_id: str | None = None
    project_id: str | None = None
    client_id: str | None = None
    type: str | None = None

    @classmethod
    def from_json(cls, secret: str | bytes | dict[str, Any]) -> "GoogleServiceAccountKey":
        """
        Parse and check a service account key.

        Args:
            secret: Key JSON as text, bytes or an already decoded mapping

        Returns:
            Validated key whose private key loads as RSA

        Raises:
            ConfigError: If the JSON, a required field or the private key is invalid
        """
        try:
            if isinstance(secret, dict):
                key = cls.model_validate(secret)
            else:
                key = cls.model_validate_json(secret)
        except ValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or "key" for err in exc.errors()
            )
            raise ConfigError(f"Invalid Google service account key ({fields})") from exc

        if key.type is not None and key.type != "service_account":
            raise ConfigError(f"Expected a service_account key, got type {key.type!r}")

        # Fail at setup, not on the first purchase
        key.load_private_key()
        return key

    def load_private_key(self) -> rsa.RSAPrivateKey:
        try:
            private_key = serialization.load_pem_private_key(
                self.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ConfigError("Google service account private_key is not a valid PEM key") from exc

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigError("Google service account private_key must be an RSA key")
        return private_key


class GooglePlayPurchaseData(GoogleModel):
    """The INAPP_PURCHASE_DATA JSON embedded in the Unity payload."""

    package_name: str = Field(..., alias="packageName")
    product_id: str = Field(..., alias="productId")
    purchase_token: str = Field(..., alias="purchaseToken")
    order_id: str | None = Field(None, alias="orderId")
    purchase_time: int | None = Field(None, alias="purchaseTime")
    purchase_state: int | None = Field(None, alias="purchaseState")  # 0: purchased, 1: canceled, 2: pending
    auto_renewing: bool | None = Field(None, alias="autoRenewing")
    acknowledged: bool | None = None


class GoogleSkuDetails(GoogleModel):
    sku_type: str = Field(..., alias="type")  # "subs" or "inapp"


class GooglePlayData(GoogleModel):
    """Payload Unity IAP produces for a Google Play purchase."""

    json_data: str = Field(..., alias="json")
    signature: str | None = None
    sku_details: str | None = Field(None, alias="skuDetails")

    def get_purchase(self) -> GooglePlayPurchaseData:
        try:
            return GooglePlayPurchaseData.model_validate_json(self.json_data)
        except ValidationError as exc:
            raise ParseError("Payload.json", str(exc)) from exc

    def get_sku_type(self) -> str | None:
        if not self.sku_details:
            return None
        try:
            return GoogleSkuDetails.model_validate_json(self.sku_details).sku_type
        except ValidationError as exc:
            raise ParseError("Payload.skuDetails", str(exc)) from exc


@dataclass(frozen=True)
class GooglePurchaseReference:
    """Coordinates of a subscription purchase in the Play Developer API."""

    package_name: str
    subscription_id: str
    purchase_token: str

    def __post_init__(self) -> None:
        """Validate reference fields."""
        if not self.purchase_token:
            raise ParseError("Payload", "purchase token is empty")
        if not self.package_name:
            raise ConfigError("Google package name required")
        if not self.subscription_id:
            raise ConfigError("Google subscription ID required")
        for value in (self.package_name, self.subscription_id, self.purchase_token):
            if value in (".", ".."):
                raise ParseError("Payload", f"invalid path segment {value!r}")

    @classmethod
    def from_payload(
        cls,
        payload: str,
        package_name: str | None = None,
        subscription_id: str | None = None,
    ) -> "GooglePurchaseReference":
        """
        Build a reference from a receipt payload.

        The Unity payload carries its own package and product; a bare
        purchase token relies on the configured package and subscription.

        Raises:
            ParseError: If the Unity payload is malformed
            ConfigError: If a bare token arrives without configured defaults
            UnsupportedPurchaseError: If the purchase is not a subscription
        """
        if not payload.lstrip().startswith("{"):
            return cls(
                package_name=package_name or "",
                subscription_id=subscription_id or "",
                purchase_token=payload.strip(),
            )

        try:
            data = GooglePlayData.model_validate_json(payload)
        except ValidationError as exc:
            raise ParseError("Payload", str(exc)) from exc

        sku_type = data.get_sku_type()
        if sku_type is not None and sku_type != SKU_TYPE_SUBSCRIPTION:
            raise UnsupportedPurchaseError(sku_type)

        purchase = data.get_purchase()
        return cls(
            package_name=purchase.package_name,
            subscription_id=purchase.product_id,
            purchase_token=purchase.purchase_token,
        )


class GoogleSubscriptionPurchase(GoogleModel):
    """purchases.subscriptions resource (SubscriptionPurchase)."""

    kind: str | None = None
    # Epoch milliseconds, sent as strings
    start_time_millis: str | None = Field(None, alias="startTimeMillis")
    expiry_time_millis: str | None = Field(None, alias="expiryTimeMillis")
    auto_renewing: bool | None = Field(None, alias="autoRenewing")
    price_currency_code: str | None = Field(None, alias="priceCurrencyCode")
    price_amount_micros: str | None = Field(None, alias="priceAmountMicros")
    country_code: str | None = Field(None, alias="countryCode")
    payment_state: int | None = Field(None, alias="paymentState")
    cancel_reason: int | None = Field(None, alias="cancelReason")
    user_cancellation_time_millis: str | None = Field(None, alias="userCancellationTimeMillis")
    order_id: str | None = Field(None, alias="orderId")
    linked_purchase_token: str | None = Field(None, alias="linkedPurchaseToken")
    purchase_type: int | None = Field(None, alias="purchaseType")  # None: real, 0: test, 1: promo
    acknowledgement_state: int | None = Field(None, alias="acknowledgementState")

    @property
    def expires_at_ms(self) -> int | None:
        if self.expiry_time_millis is None:
            return None
        try:
            return int(self.expiry_time_millis)
        except ValueError:
            return None

    def is_payment_active(self) -> bool:
        return self.payment_state in ACTIVE_PAYMENT_STATES

    def is_revoked(self) -> bool:
        return self.cancel_reason in REVOKING_CANCEL_REASONS

    def is_test_purchase(self) -> bool:
        return self.purchase_type == PURCHASE_TYPE_TEST


@dataclass(frozen=True)
class GoogleAccessToken:
    """OAuth access token for the Play Developer API."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None


@dataclass(frozen=True)
class GoogleUrls:
    """Play Developer API host."""

    api_base: str = field(default_factory=lambda: settings.google_api_base_url)

    def subscription_url(self, reference: GooglePurchaseReference) -> str:
        # Client-supplied values; each must stay a single path segment
        package_name, subscription_id, purchase_token = (
            quote(value, safe="")
            for value in (
                reference.package_name,
                reference.subscription_id,
                reference.purchase_token,
            )
        )
        return (
            f"{self.api_base}/androidpublisher/v3/applications/{package_name}"
            f"/purchases/subscriptions/{subscription_id}/tokens/{purchase_token}"
        )
