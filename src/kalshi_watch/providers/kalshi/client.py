"""Signed Kalshi REST client: market snapshots, positions and exit orders."""
import json
import logging
import uuid
from typing import Any

import httpx

from kalshi_watch.providers.core.error_mapper import ErrorMapper
from kalshi_watch.providers.core.exceptions import (OrderSubmissionError,
                                                    PositionFetchError,
                                                    RequestSigningError,
                                                    ResponseFormatError)
from kalshi_watch.providers.kalshi.dto import (KalshiMarketDTO,
                                               KalshiOrderDTO,
                                               KalshiPositionsDTO)
from kalshi_watch.providers.kalshi.signer import sign_request
from kalshi_watch.schemas import Credentials, MarketSnapshot, Side

logger = logging.getLogger(__name__)

# Exceptions from a signed call that we turn into typed watcher errors;
# everything else propagates.
_REQUEST_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    RequestSigningError,
    ResponseFormatError,
    ValueError,
)


class KalshiClient:
    """Kalshi trade API client.

    One shared ``httpx.AsyncClient``; every call is signed with the credentials
    passed in, so a single client serves all watchers without holding keys.
    """

    MARKET_PATH = "/trade-api/v2/markets/{ticker}"
    POSITIONS_PATH = "/trade-api/v2/portfolio/positions"
    ORDERS_PATH = "/trade-api/v2/portfolio/orders"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        error_mapper: ErrorMapper | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, e.g. "https://demo-api.kalshi.co".
            timeout: Per-request timeout in seconds.
            transport: Optional transport (tests use httpx.MockTransport).
            error_mapper: Turns upstream errors into user-facing reasons.
        """
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )
        self._errors = error_mapper or ErrorMapper()

    async def _request(
        self,
        method: str,
        path: str,
        credentials: Credentials,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a signed request and return the decoded JSON body.

        Raises:
            httpx.HTTPError: On transport or HTTP errors.
            ResponseFormatError: The body is not a JSON object.
        """
        content = (
            json.dumps(body, separators=(",", ":")).encode("utf-8")
            if body is not None
            else None
        )
        headers = sign_request(method, path, credentials, content)
        if content is not None:
            headers["Content-Type"] = "application/json"
        logger.debug("%s %s", method, path)
        response = await self._client.request(
            method, path, params=params, content=content, headers=headers
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"Unexpected {self._errors.api_name} response to {method} {path}"
            )
        return data

    async def get_market(self, ticker: str, credentials: Credentials) -> MarketSnapshot:
        """Fetch current market metadata and prices for a ticker.

        Raises:
            httpx.HTTPError: On transport or HTTP errors.
            ResponseFormatError: The body is not a JSON object.
            ValueError: When the response has no market.
        """
        data = await self._request(
            "GET", self.MARKET_PATH.format(ticker=ticker), credentials
        )
        market = data.get("market")
        if not market:
            raise ValueError(f"Market '{ticker}' not found")
        return KalshiMarketDTO.model_validate(market).to_snapshot()

    async def get_position_size(self, ticker: str, credentials: Credentials) -> int:
        """Return the open position size (contracts) for a ticker; 0 if none.

        Raises:
            PositionFetchError: The positions request failed.
        """
        try:
            data = await self._request(
                "GET",
                self.POSITIONS_PATH,
                credentials,
                params={"limit": 100},
            )
            positions = KalshiPositionsDTO.model_validate(data)
        except _REQUEST_EXCEPTIONS as exc:
            raise PositionFetchError(self._errors.describe(exc)) from exc
        return positions.size_for(ticker)

    async def create_market_sell(
        self,
        ticker: str,
        side: Side,
        count: int,
        credentials: Credentials,
    ) -> KalshiOrderDTO:
        """Submit a market sell for ``count`` contracts of ``side``.

        Raises:
            OrderSubmissionError: The order was rejected or could not be sent.
        """
        body = {
            "ticker": ticker,
            "action": "sell",
            "side": side.value,
            "type": "market",
            "count": count,
            "client_order_id": str(uuid.uuid4()),
        }
        try:
            data = await self._request("POST", self.ORDERS_PATH, credentials, body=body)
            order = data.get("order")
            if not order:
                raise ValueError("Order response did not include an order")
            return KalshiOrderDTO.model_validate(order)
        except _REQUEST_EXCEPTIONS as exc:
            raise OrderSubmissionError(self._errors.describe(exc)) from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
