"""
Google Play backend using the Play Developer API (purchases.subscriptions).

Authentication failures (AuthError) are kept apart from purchases Google
does not know or no longer serves (StoreRejectedError) so that callers can
tell a configuration problem from a bad purchase.
"""

import httpx
from structlog import get_logger

from receipt_validator.clock import now_millis
from receipt_validator.exceptions import AuthError, StoreRejectedError, TransportError
from receipt_validator.models.google import (
    GooglePurchaseReference,
    GoogleServiceAccountKey,
    GoogleSubscriptionPurchase,
    GoogleUrls,
)
from receipt_validator.models.receipt import (
    ENVIRONMENT_PRODUCTION,
    ENVIRONMENT_SANDBOX,
    PurchaseResponse,
    Store,
)
from receipt_validator.services.google_auth import GoogleServiceAccountAuthenticator
from receipt_validator.services.transport import decode, http_client_scope, send

logger = get_logger(__name__)


async def fetch_google_receipt_data(
    reference: GooglePurchaseReference,
    service_account_key: GoogleServiceAccountKey,
    urls: GoogleUrls | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> GoogleSubscriptionPurchase:
    """
    Retrieve the subscription resource for a purchase token.

    Args:
        reference: Package, subscription ID and purchase token
        service_account_key: Key of a service account linked to the Play Console
        urls: Play Developer API host, defaults to Google's
        http_client: Optional client to reuse

    Returns:
        The SubscriptionPurchase resource

    Raises:
        AuthError: If no token can be obtained or Google refuses it
        StoreRejectedError: If Google answers 4xx for the purchase itself
            (404 unknown token, 410 token no longer available)
        TransportError: If an endpoint cannot be reached or answers garbage
    """
    urls = urls or GoogleUrls()
    authenticator = GoogleServiceAccountAuthenticator(service_account_key)

    logger.debug(
        "google_subscription_fetching",
        client_email=service_account_key.client_email,
        package_name=reference.package_name,
        subscription_id=reference.subscription_id,
    )

    async with http_client_scope(http_client) as client:
        token = await authenticator.fetch_access_token(client)
        response = await send(
            client,
            "GET",
            urls.subscription_url(reference),
            headers={"Authorization": f"{token.token_type} {token.access_token}"},
        )

    if response.status_code in (401, 403):
        logger.error(
            "google_subscription_unauthorized",
            status=response.status_code,
            client_email=service_account_key.client_email,
        )
        raise AuthError(
            f"Play Developer API refused {service_account_key.client_email} "
            f"(HTTP {response.status_code})"
        )
    if 400 <= response.status_code < 500:
        logger.warning(
            "google_subscription_rejected",
            status=response.status_code,
            package_name=reference.package_name,
            subscription_id=reference.subscription_id,
        )
        raise StoreRejectedError(Store.GOOGLE_PLAY.value, response.status_code)
    if response.status_code >= 500:
        logger.error("google_subscription_http_error", status=response.status_code)
        raise TransportError(
            f"Play Developer API returned HTTP {response.status_code}",
            status_code=response.status_code,
        )

    return decode(response, GoogleSubscriptionPurchase)


def validate_google_subscription(
    response: GoogleSubscriptionPurchase,
    now_ms: int | None = None,
) -> PurchaseResponse:
    """
    Validate based on expiry and payment state.

    Valid only when the expiry is in the future, payment was received (or a
    free trial is running) and the subscription was not revoked by the system
    or replaced. A missing or unparseable expiry is invalid, not an error.
    """
    now_ms = now_millis() if now_ms is None else now_ms
    expires_at = response.expires_at_ms

    valid = (
        expires_at is not None
        and expires_at > now_ms
        and response.is_payment_active()
        and not response.is_revoked()
    )
    environment = ENVIRONMENT_SANDBOX if response.is_test_purchase() else ENVIRONMENT_PRODUCTION

    logger.info(
        "google_subscription_validated",
        valid=valid,
        now=now_ms,
        order_id=response.order_id,
        expiry_time=response.expiry_time_millis,
        payment_state=response.payment_state,
        cancel_reason=response.cancel_reason,
        price_currency_code=response.price_currency_code,
        price_amount_micros=response.price_amount_micros,
    )

    return PurchaseResponse(
        valid=valid,
        environment=environment,
        expiry_time_millis=expires_at,
        auto_renewing=response.auto_renewing,
    )
