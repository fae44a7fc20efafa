"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- A scripted store server behind httpx.MockTransport
- Google service account keys signed with a throwaway RSA key
- Store URLs pointing at the scripted server
- Unity receipts for both stores
"""

import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from receipt_validator.models.apple import AppleUrls
from receipt_validator.models.google import GoogleServiceAccountKey, GoogleUrls
from receipt_validator.models.receipt import Store, UnityPurchaseReceipt
from tests.factories import (
    APPLE_PRODUCTION,
    APPLE_SANDBOX,
    GOOGLE_API_BASE,
    GOOGLE_TOKEN_URI,
    StoreServer,
)

# ============================================================================
# Store Server Fixtures
# ============================================================================


@pytest.fixture
def store_server() -> StoreServer:
    """Empty scripted store server."""
    return StoreServer()


@pytest.fixture
def apple_urls() -> AppleUrls:
    return AppleUrls(production=APPLE_PRODUCTION, sandbox=APPLE_SANDBOX)


@pytest.fixture
def google_urls() -> GoogleUrls:
    return GoogleUrls(api_base=GOOGLE_API_BASE)


# ============================================================================
# Credential Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """Throwaway RSA key standing in for a service account key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def service_account_info(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, str]:
    """Service account key JSON as downloaded from the Cloud console."""
    pem = rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    return {
        "type": "service_account",
        "project_id": "example-project",
        "private_key_id": "key-0001",
        "private_key": pem,
        "client_email": "validator@example-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": GOOGLE_TOKEN_URI,
    }


@pytest.fixture
def service_account_json(service_account_info: dict[str, str]) -> str:
    return json.dumps(service_account_info)


@pytest.fixture
def service_account_key(service_account_info: dict[str, str]) -> GoogleServiceAccountKey:
    return GoogleServiceAccountKey.from_json(service_account_info)


# ============================================================================
# Receipt Fixtures
# ============================================================================


@pytest.fixture
def apple_receipt() -> UnityPurchaseReceipt:
    return UnityPurchaseReceipt(
        store=Store.APPLE_APP_STORE,
        transaction_id="100000001",
        payload="TUlJVGVnWUpLb1pJaHZjTkFRY0NvSUlUYXpDQ0UyY0NBUUV4Q3pBSg==",
    )


@pytest.fixture
def google_receipt() -> UnityPurchaseReceipt:
    return UnityPurchaseReceipt(
        store=Store.GOOGLE_PLAY,
        transaction_id="T1",
        payload="tok123",
    )
