from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from packages.checkout.config import CheckoutConfig
from packages.checkout.errors import EndpointRejectedError, MalformedResponseError, NetworkError
from packages.shared.schemas.order_v1 import (
    FailedOrderCreateV1,
    OrderConfirmationEmailV1,
    OrderCreateRequestV1,
    OrderCreateResponseV1,
)
from packages.shared.schemas.payment_v1 import (
    PaymentAuthorizeRequestV1,
    PaymentAuthorizeResponseV1,
)
from packages.shared.schemas.pricing_v1 import PricingRequestV1, PricingResultV1

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorefrontClient:
    """Async JSON client for the storefront API.

    Every failure surfaces as one of three errors: NetworkError for transport
    problems (timeouts included), EndpointRejectedError for non-2xx responses and
    MalformedResponseError for bodies that do not parse into the expected schema.
    """

    def __init__(
        self,
        config: CheckoutConfig,
        user_id: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            headers={"X-User-Id": user_id},
            transport=transport,
        )

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def calculate_total(self, request: PricingRequestV1) -> PricingResultV1:
        body = await self._post("/v1/pricing/calculate-total", request)
        return _parse(PricingResultV1, body)

    async def authorize_payment(
        self, request: PaymentAuthorizeRequestV1
    ) -> PaymentAuthorizeResponseV1:
        body = await self._post("/v1/payment/authorize", request)
        return _parse(PaymentAuthorizeResponseV1, body)

    async def create_order(self, request: OrderCreateRequestV1) -> OrderCreateResponseV1:
        body = await self._post("/v1/orders/create", request)
        return _parse(OrderCreateResponseV1, body)

    async def record_failed_order(self, record: FailedOrderCreateV1) -> str:
        body = await self._post("/v1/orders/failed", record)
        return _parse(OrderCreateResponseV1, body).id

    async def send_order_confirmation(self, message: OrderConfirmationEmailV1) -> None:
        await self._post("/v1/email/order-confirmation", message)

    async def _post(self, path: str, payload: BaseModel) -> Any:
        try:
            resp = await self._http.post(path, json=payload.model_dump(mode="json"))
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timed out calling {path}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if not resp.is_success:
            error, details = _error_fields(resp)
            logger.debug("endpoint_rejected", path=path, status_code=resp.status_code, error=error)
            raise EndpointRejectedError(resp.status_code, error, details)

        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"{path} returned a non-JSON body") from e


def _parse(model: type[ModelT], body: Any) -> ModelT:
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected {model.__name__} payload: {e}") from e


def _error_fields(resp: httpx.Response) -> tuple[str, str | None]:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}", resp.text or None

    if isinstance(body, dict):
        # FastAPI's own errors use "detail"; API errors use "error"/"details".
        error = body.get("error") or body.get("detail") or resp.reason_phrase
        details = body.get("details")
        return str(error), None if details is None else str(details)

    return resp.reason_phrase or f"HTTP {resp.status_code}", str(body)
