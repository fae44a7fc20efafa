"""
Tests for the Google Play backend.

Covers purchases.subscriptions retrieval, its error mapping and the
expiry and payment state evaluation.
"""

import pytest

from receipt_validator.exceptions import AuthError, StoreRejectedError, TransportError
from receipt_validator.models.google import GooglePurchaseReference, GoogleSubscriptionPurchase
from receipt_validator.services.google import (
    fetch_google_receipt_data,
    validate_google_subscription,
)
from tests.factories import (
    DAY_MS,
    GOOGLE_TOKEN_URI,
    HOUR_MS,
    PACKAGE_NAME,
    SUBSCRIPTION_ID,
    google_subscription_body,
    google_token_body,
    subscription_url,
)

NOW = 1_750_000_000_000


@pytest.fixture
def reference() -> GooglePurchaseReference:
    return GooglePurchaseReference(
        package_name=PACKAGE_NAME,
        subscription_id=SUBSCRIPTION_ID,
        purchase_token="tok123",
    )


class TestFetchGoogleReceiptData:
    """Tests for fetch_google_receipt_data."""

    @pytest.mark.asyncio
    async def test_success(self, store_server, google_urls, service_account_key, reference):
        """Test fetching the subscription resource with a bearer token."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add(
            "GET", subscription_url("tok123"), (200, google_subscription_body(NOW + DAY_MS))
        )

        async with store_server.client() as client:
            purchase = await fetch_google_receipt_data(
                reference, service_account_key, urls=google_urls, http_client=client
            )

        assert purchase.expires_at_ms == NOW + DAY_MS
        assert purchase.payment_state == 1

        get_request = store_server.requests[1]
        assert get_request.headers["Authorization"] == "Bearer ya29.test-token"

    @pytest.mark.asyncio
    async def test_authenticates_every_call(
        self, store_server, google_urls, service_account_key, reference
    ):
        """Test that access tokens are not reused between validations."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add(
            "GET", subscription_url("tok123"), (200, google_subscription_body(NOW + DAY_MS))
        )

        async with store_server.client() as client:
            for _ in range(2):
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

        assert store_server.calls("POST", GOOGLE_TOKEN_URI) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 410])
    async def test_unknown_purchase_rejected(
        self, store_server, google_urls, service_account_key, reference, status
    ):
        """Test that 4xx for the purchase is a store rejection."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add(
            "GET",
            subscription_url("tok123"),
            (status, {"error": {"code": status, "message": "The purchase token is no longer valid."}}),
        )

        async with store_server.client() as client:
            with pytest.raises(StoreRejectedError) as exc_info:
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

        assert exc_info.value.store == "GooglePlay"
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_unauthorized(self, store_server, google_urls, service_account_key, reference, status):
        """Test that a refused access token is an auth error, not a rejection."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add(
            "GET",
            subscription_url("tok123"),
            (status, {"error": {"code": status, "status": "PERMISSION_DENIED"}}),
        )

        async with store_server.client() as client:
            with pytest.raises(AuthError, match=str(status)):
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

    @pytest.mark.asyncio
    async def test_token_rejected_skips_lookup(
        self, store_server, google_urls, service_account_key, reference
    ):
        """Test that no subscription request is made without an access token."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (400, {"error": "invalid_grant"}))

        async with store_server.client() as client:
            with pytest.raises(AuthError):
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

        assert store_server.calls("GET", subscription_url("tok123")) == 0

    @pytest.mark.asyncio
    async def test_server_error(self, store_server, google_urls, service_account_key, reference):
        """Test that 5xx is a transport failure."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add("GET", subscription_url("tok123"), (503, "backend unavailable"))

        async with store_server.client() as client:
            with pytest.raises(TransportError) as exc_info:
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_undecodable_body(self, store_server, google_urls, service_account_key, reference):
        """Test that a non-JSON success is a transport failure."""
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add("GET", subscription_url("tok123"), (200, "not json"))

        async with store_server.client() as client:
            with pytest.raises(TransportError, match="GoogleSubscriptionPurchase"):
                await fetch_google_receipt_data(
                    reference, service_account_key, urls=google_urls, http_client=client
                )

    @pytest.mark.asyncio
    async def test_control_character_in_token(self, store_server, google_urls, service_account_key):
        """Test that a token with a control character is escaped, not a URL error."""
        reference = GooglePurchaseReference(
            package_name=PACKAGE_NAME, subscription_id=SUBSCRIPTION_ID, purchase_token="tok\x01x"
        )
        store_server.add("POST", GOOGLE_TOKEN_URI, (200, google_token_body()))
        store_server.add(
            "GET", subscription_url("tok\x01x"), (200, google_subscription_body(NOW + DAY_MS))
        )

        async with store_server.client() as client:
            purchase = await fetch_google_receipt_data(
                reference, service_account_key, urls=google_urls, http_client=client
            )

        assert purchase.expires_at_ms == NOW + DAY_MS
        assert store_server.requests[1].url.raw_path.endswith(b"/tokens/tok%01x")


class TestValidateGoogleSubscription:
    """Tests for validate_google_subscription."""

    def _validate(self, body):
        return validate_google_subscription(
            GoogleSubscriptionPurchase.model_validate(body), now_ms=NOW
        )

    def test_active_subscription(self):
        """Test that a paid, unexpired subscription is valid."""
        result = self._validate(google_subscription_body(NOW + DAY_MS))

        assert result.valid is True
        assert result.environment == "Production"
        assert result.expiry_time_millis == NOW + DAY_MS
        assert result.auto_renewing is True

    def test_expired(self):
        """Test that a lapsed subscription is invalid."""
        assert self._validate(google_subscription_body(NOW - HOUR_MS)).valid is False

    def test_expiry_equal_to_now(self):
        """Test that expiry must be strictly in the future."""
        assert self._validate(google_subscription_body(NOW)).valid is False

    def test_missing_expiry(self):
        """Test that a resource without expiry is invalid, not an error."""
        result = self._validate(google_subscription_body(None))

        assert result.valid is False
        assert result.expiry_time_millis is None

    @pytest.mark.parametrize("payment_state, valid", [(0, False), (1, True), (2, True), (3, False)])
    def test_payment_states(self, payment_state, valid):
        """Test that only received payments and free trials grant access."""
        body = google_subscription_body(NOW + DAY_MS, payment_state=payment_state)

        assert self._validate(body).valid is valid

    def test_missing_payment_state(self):
        """Test that an unknown payment state is invalid."""
        body = google_subscription_body(NOW + DAY_MS, payment_state=None)

        assert self._validate(body).valid is False

    def test_user_cancelled_keeps_access_until_expiry(self):
        """Test that a user cancellation stays valid for the paid period."""
        body = google_subscription_body(
            NOW + DAY_MS, autoRenewing=False, cancelReason=0, userCancellationTimeMillis=str(NOW)
        )

        result = self._validate(body)

        assert result.valid is True
        assert result.auto_renewing is False

    @pytest.mark.parametrize("reason", [1, 2])
    def test_revoked(self, reason):
        """Test that system cancellation and replacement revoke access."""
        body = google_subscription_body(NOW + DAY_MS, cancelReason=reason)

        assert self._validate(body).valid is False

    def test_test_purchase_reports_sandbox(self):
        """Test that license-tester purchases report the sandbox environment."""
        body = google_subscription_body(NOW + DAY_MS, purchaseType=0)

        result = self._validate(body)

        assert result.valid is True
        assert result.environment == "Sandbox"
