"""
Unity Purchase Validator - store-agnostic entry point.

Holds the store credentials and routes each receipt to the matching backend.
Configuration is builder style; every setter returns a new validator, so one
instance can be shared by any number of concurrent validations.

    validator = (
        UnityPurchaseValidator()
        .set_apple_secret("<APPLE_SHARED_SECRET>")
        .set_google_service_account_key(service_account_json)
    )
    verdict = await validator.validate(UnityPurchaseReceipt.parse(raw_receipt))
"""

from dataclasses import dataclass, field, replace
from typing import Any, Protocol

import httpx

from receipt_validator.exceptions import MissingCredentialError
from receipt_validator.models.apple import AppleUrls
from receipt_validator.models.google import (
    GooglePurchaseReference,
    GoogleServiceAccountKey,
    GoogleUrls,
)
from receipt_validator.models.receipt import PurchaseResponse, Store, UnityPurchaseReceipt
from receipt_validator.observability import get_logger, log_context
from receipt_validator.services.apple import fetch_apple_receipt_data, validate_apple_subscription
from receipt_validator.services.google import (
    fetch_google_receipt_data,
    validate_google_subscription,
)

logger = get_logger(__name__)


class Validator(Protocol):
    """
    Receipt validator protocol.

    Implementations must treat an expired or inactive purchase as a verdict
    (``valid=False``), not as an error.
    """

    async def validate(self, receipt: UnityPurchaseReceipt) -> PurchaseResponse:
        """
        Validate a receipt against its store.

        Raises:
            ReceiptValidationError: On configuration or protocol failures
        """
        ...


@dataclass(frozen=True)
class UnityPurchaseValidator:
    """Validator holding the secrets needed to authenticate against both stores."""

    # Shared secret sent in Apple's requestBody
    apple_secret: str | None = field(default=None, repr=False)
    service_account_key: GoogleServiceAccountKey | None = field(default=None, repr=False)
    # Used when a Google payload is a bare purchase token
    google_package_name: str | None = None
    google_subscription_id: str | None = None
    # Only overridden for tests or proxies
    apple_urls: AppleUrls = field(default_factory=AppleUrls)
    google_urls: GoogleUrls = field(default_factory=GoogleUrls)
    http_client: httpx.AsyncClient | None = field(default=None, repr=False, compare=False)

    def set_apple_secret(self, secret: str) -> "UnityPurchaseValidator":
        """Store Apple's shared secret verbatim."""
        return replace(self, apple_secret=secret)

    def set_google_service_account_key(
        self, secret: str | bytes | dict[str, Any]
    ) -> "UnityPurchaseValidator":
        """
        Store Google's service account key.

        Takes the JSON downloaded from the Google Cloud console, which must
        contain at least:
        {
            "private_key": "",
            "client_email": "",
            "token_uri": ""
        }

        Raises:
            ConfigError: If the key is malformed, so that bad credentials
                surface at setup rather than during a purchase
        """
        key = GoogleServiceAccountKey.from_json(secret)
        logger.info("google_service_account_configured", client_email=key.client_email)
        return replace(self, service_account_key=key)

    def set_google_subscription(
        self, package_name: str, subscription_id: str
    ) -> "UnityPurchaseValidator":
        """Set the package and subscription used for bare purchase tokens."""
        return replace(
            self,
            google_package_name=package_name,
            google_subscription_id=subscription_id,
        )

    async def validate(self, receipt: UnityPurchaseReceipt) -> PurchaseResponse:
        """
        Validate a Unity receipt against its store.

        Raises:
            MissingCredentialError: If the store's credential was never set;
                no request is made
            ReceiptValidationError: On any other configuration or protocol failure
        """
        with log_context(store=receipt.store.value, transaction_id=receipt.transaction_id):
            logger.debug("validating_receipt", payload_length=len(receipt.payload))

            if receipt.store is Store.APPLE_APP_STORE:
                result = await self._validate_apple(receipt)
            else:
                result = await self._validate_google(receipt)

            logger.info("receipt_validated", valid=result.valid, environment=result.environment)
            return result

    async def _validate_apple(self, receipt: UnityPurchaseReceipt) -> PurchaseResponse:
        if not self.apple_secret:
            raise MissingCredentialError(Store.APPLE_APP_STORE.value)

        verification = await fetch_apple_receipt_data(
            receipt,
            self.apple_secret,
            urls=self.apple_urls,
            http_client=self.http_client,
        )
        return validate_apple_subscription(
            verification.response,
            transaction_id=receipt.transaction_id,
            environment=verification.environment,
        )

    async def _validate_google(self, receipt: UnityPurchaseReceipt) -> PurchaseResponse:
        if self.service_account_key is None:
            raise MissingCredentialError(Store.GOOGLE_PLAY.value)

        reference = GooglePurchaseReference.from_payload(
            receipt.payload,
            package_name=self.google_package_name,
            subscription_id=self.google_subscription_id,
        )
        response = await fetch_google_receipt_data(
            reference,
            self.service_account_key,
            urls=self.google_urls,
            http_client=self.http_client,
        )
        result = validate_google_subscription(response)
        return replace(result, product_id=reference.subscription_id)
