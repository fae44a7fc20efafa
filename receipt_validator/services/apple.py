"""
Apple App Store backend using the verifyReceipt endpoint.

Receipts are always posted to production first. Apple answers 21007 for a
sandbox receipt, in which case the identical request is sent once to the
sandbox. Every other non-zero status is a rejection.

https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

import httpx
from structlog import get_logger

from receipt_validator.clock import now_millis
from receipt_validator.exceptions import MissingCredentialError, StoreRejectedError, TransportError
from receipt_validator.models.apple import (
    APPLE_STATUS_SANDBOX_RECEIPT,
    APPLE_STATUS_VALID,
    AppleReceiptInfo,
    AppleResponse,
    AppleUrls,
    AppleVerification,
    AppleVerifyRequest,
    parse_millis,
)
from receipt_validator.models.receipt import (
    ENVIRONMENT_PRODUCTION,
    ENVIRONMENT_SANDBOX,
    PurchaseResponse,
    Store,
    UnityPurchaseReceipt,
)
from receipt_validator.services.transport import decode, http_client_scope, send

logger = get_logger(__name__)


async def fetch_apple_receipt_data(
    receipt: UnityPurchaseReceipt,
    password: str | None,
    urls: AppleUrls | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AppleVerification:
    """
    Retrieve the verifyReceipt responseBody for a receipt.

    Args:
        receipt: Apple receipt whose payload is the base64 app receipt
        password: App shared secret
        urls: verifyReceipt hosts, defaults to Apple's
        http_client: Optional client to reuse

    Returns:
        The successful response and the environment that verified it

    Raises:
        MissingCredentialError: If no shared secret is set
        StoreRejectedError: If Apple answers with any status other than 0 or 21007,
            or the sandbox answers with a non-zero status
        TransportError: If an endpoint cannot be reached or answers garbage
    """
    if not password:
        raise MissingCredentialError(Store.APPLE_APP_STORE.value)

    urls = urls or AppleUrls()
    body = AppleVerifyRequest(receipt_data=receipt.payload, password=password).model_dump(
        by_alias=True
    )

    async with http_client_scope(http_client) as client:
        response = await _post_verify_receipt(client, urls.production, body)
        environment = response.environment or ENVIRONMENT_PRODUCTION

        if response.status == APPLE_STATUS_SANDBOX_RECEIPT:
            logger.info("apple_sandbox_receipt_redirected", transaction_id=receipt.transaction_id)
            response = await _post_verify_receipt(client, urls.sandbox, body)
            environment = ENVIRONMENT_SANDBOX

    if response.status != APPLE_STATUS_VALID:
        logger.warning(
            "apple_receipt_rejected",
            status=response.status,
            environment=environment,
            is_retryable=response.is_retryable,
        )
        raise StoreRejectedError(Store.APPLE_APP_STORE.value, response.status, response.is_retryable)

    return AppleVerification(response=response, environment=environment)


def validate_apple_subscription(
    response: AppleResponse,
    transaction_id: str | None = None,
    environment: str | None = None,
    now_ms: int | None = None,
) -> PurchaseResponse:
    """
    Validate based on whether the subscription's latest expiry has passed.

    When ``transaction_id`` identifies a transaction only renewals of that
    transaction's product are considered. Among the candidates the entry with
    the latest expiry wins. A refunded or revoked entry is never valid; an
    expired one still is while Apple reports a billing grace period for it.

    Args:
        response: verifyReceipt responseBody
        transaction_id: Transaction being validated
        environment: Environment to report, defaults to the response's
        now_ms: Reference time, defaults to now

    Returns:
        Verdict; ``valid`` is False for empty or unverified responses
    """
    now_ms = now_millis() if now_ms is None else now_ms
    environment = environment or response.environment

    if not response.is_verified():
        return PurchaseResponse(valid=False, environment=environment)

    product_id = response.get_product_id(transaction_id) if transaction_id else None
    latest = _latest_entry(response, product_id)
    if latest is None:
        logger.info(
            "apple_subscription_not_found",
            transaction_id=transaction_id,
            product_id=product_id,
        )
        return PurchaseResponse(valid=False, environment=environment, product_id=product_id)

    expires_at = latest.expires_at_ms
    renewal = response.get_renewal_info(latest.product_id, latest.original_transaction_id)
    in_grace_period = renewal is not None and renewal.in_grace_period(now_ms)
    valid = not latest.is_cancelled() and (
        (expires_at is not None and expires_at > now_ms) or in_grace_period
    )

    logger.info(
        "apple_subscription_validated",
        valid=valid,
        now=now_ms,
        product_id=latest.product_id,
        original_transaction_id=latest.original_transaction_id,
        expires_date_ms=expires_at,
        cancelled=latest.is_cancelled(),
        in_grace_period=in_grace_period,
    )

    return PurchaseResponse(
        valid=valid,
        environment=environment,
        product_id=latest.product_id,
        expiry_time_millis=expires_at,
        auto_renewing=renewal.will_renew() if renewal else None,
    )


def _latest_entry(response: AppleResponse, product_id: str | None) -> AppleReceiptInfo | None:
    """Entry with the latest expiry, ties broken by purchase date."""
    candidates = [
        entry
        for entry in response.subscription_entries()
        if entry.expires_at_ms is not None and (product_id is None or entry.product_id == product_id)
    ]
    return max(
        candidates,
        key=lambda entry: (entry.expires_at_ms or 0, parse_millis(entry.purchase_date_ms) or 0),
        default=None,
    )


async def _post_verify_receipt(
    client: httpx.AsyncClient,
    host: str,
    body: dict[str, object],
) -> AppleResponse:
    """POST one verifyReceipt request and decode the responseBody."""
    http_response = await send(client, "POST", f"{host}/verifyReceipt", json=body)

    if http_response.status_code >= 400:
        logger.error("apple_verify_receipt_http_error", host=host, status=http_response.status_code)
        raise TransportError(
            f"verifyReceipt returned HTTP {http_response.status_code}",
            status_code=http_response.status_code,
        )

    response = decode(http_response, AppleResponse)

    latest_expiry = max(
        (entry.expires_at_ms for entry in response.latest_receipt_info or [] if entry.expires_at_ms),
        default=None,
    )
    logger.info(
        "apple_receipt_fetched",
        host=host,
        status=response.status,
        environment=response.environment,
        latest_expires_date_ms=latest_expiry,
    )
    return response
