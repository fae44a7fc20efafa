"""
Receipt domain models - Immutable dataclasses shared by both stores.

UnityPurchaseReceipt is the typed form of the envelope the Unity IAP plugin
hands to the app:

    {"Store": "GooglePlay", "TransactionID": "<txn id>", "Payload": "<payload>"}
"""

import json
from dataclasses import dataclass
from enum import Enum

from receipt_validator.exceptions import ParseError

ENVIRONMENT_PRODUCTION = "Production"
ENVIRONMENT_SANDBOX = "Sandbox"


class Store(str, Enum):
    """Store tag as written by Unity IAP."""

    GOOGLE_PLAY = "GooglePlay"
    APPLE_APP_STORE = "AppleAppStore"


@dataclass(frozen=True)
class UnityPurchaseReceipt:
    """Store-tagged receipt produced by the Unity IAP plugin."""

    store: Store
    transaction_id: str
    payload: str  # base64 receipt for Apple, purchase data or token for Google

    @classmethod
    def parse(cls, raw_json: str | bytes) -> "UnityPurchaseReceipt":
        """
        Parse the JSON envelope delivered by Unity IAP.

        Args:
            raw_json: Envelope with Store, TransactionID and Payload keys

        Returns:
            Typed receipt

        Raises:
            ParseError: If the JSON is malformed, a field is missing or not a
                string, or the store tag is unknown
        """
        try:
            document = json.loads(raw_json)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ParseError("receipt", f"invalid JSON: {exc}") from exc

        if not isinstance(document, dict):
            raise ParseError("receipt", "expected a JSON object")

        fields: dict[str, str] = {}
        for key in ("Store", "TransactionID", "Payload"):
            value = document.get(key)
            if value is None:
                raise ParseError(key, "field is required")
            if not isinstance(value, str):
                raise ParseError(key, f"expected a string, got {type(value).__name__}")
            fields[key] = value

        try:
            store = Store(fields["Store"])
        except ValueError as exc:
            raise ParseError("Store", f"unknown store {fields['Store']!r}") from exc

        return cls(
            store=store,
            transaction_id=fields["TransactionID"],
            payload=fields["Payload"],
        )


@dataclass(frozen=True)
class PurchaseResponse:
    """Store-agnostic validation verdict."""

    valid: bool
    environment: str | None = None  # "Production" or "Sandbox"

    # Diagnostic context
    product_id: str | None = None
    expiry_time_millis: int | None = None
    auto_renewing: bool | None = None
