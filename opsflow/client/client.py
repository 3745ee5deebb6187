"""Request client with retry, timeout and cancellation handling."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx

from ..config import ClientConfig
from ..contracts import RequestOptions
from ..errors import (
    APIError,
    HTTPError,
    NetworkError,
    RequestCancelledError,
    RequestTimeoutError,
)
from ..utils.retry import RetryPolicy, Sleeper, schedule_retry
from .cancellation import (
    REASON_CANCELLED,
    REASON_TIMEOUT,
    CancellationHandle,
    CancellationRegistry,
)

logger = logging.getLogger(__name__)


class RequestClient:
    """Issue HTTP calls that survive transient failures.

    One logical call runs its attempts strictly one after another, waiting
    out the backoff delay between them. Only the last error of a call is
    raised to the caller.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleeper = asyncio.sleep,
        cancellations: Optional[CancellationRegistry] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.policy = RetryPolicy.from_config(self.config)
        # deadlines are enforced per attempt by our own timer
        self._http = http_client or httpx.AsyncClient(timeout=None)
        self._owns_http = http_client is None
        self._sleep = sleep
        self._cancellations = cancellations or CancellationRegistry()

    async def __aenter__(self) -> "RequestClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    async def request(
        self,
        endpoint: str,
        options: Optional[RequestOptions] = None,
        **overrides: Any,
    ) -> Any:
        """Perform one logical call against ``base_url + endpoint``.

        Args:
            endpoint: Path appended to the configured base URL.
            options: Per-call options. Keyword ``overrides`` are merged on top.

        Returns:
            The ``data`` field of the parsed body when present, else the body.

        Raises:
            APIError: The last observed failure once no retry is left.
        """
        if options is None:
            options = RequestOptions(**overrides)
        elif overrides:
            options = RequestOptions(**{**options.model_dump(), **overrides})

        retries = self.config.max_retries if options.retries is None else options.retries
        timeout = self.config.timeout if options.timeout is None else options.timeout
        url = f"{self.config.base_url}{endpoint}"
        request_id = options.request_id or f"{options.method}-{endpoint}-{uuid.uuid4().hex}"
        headers = {"Content-Type": "application/json", **options.headers}

        current_delay = self.policy.retry_delay
        last_error: Optional[APIError] = None

        handle = self._cancellations.register(request_id)
        try:
            for attempt in range(retries + 1):
                try:
                    response = await self._attempt(
                        handle, timeout, options.method, url, headers, options.body
                    )
                except APIError as error:
                    last_error = error
                    kind = "Network error"
                else:
                    body = self._parse_body(response)
                    if response.is_success:
                        if isinstance(body, dict) and "data" in body:
                            return body["data"]
                        return body
                    last_error = HTTPError.from_response(response, body)
                    kind = "Request failed"

                if not self.policy.should_retry(attempt, last_error, retries):
                    raise last_error

                logger.warning(
                    f"[RequestClient] {kind} for {endpoint} "
                    f"(attempt {attempt + 1}/{retries + 1}, status={last_error.status}): "
                    f"{last_error.message}. Retrying in {current_delay:g}ms..."
                )
                await self._backoff(handle, current_delay)
                current_delay = self.policy.next_delay(current_delay)
        finally:
            self._cancellations.discard(request_id, handle)

        raise last_error or APIError("Request failed", 500)

    async def _backoff(self, handle: CancellationHandle, delay_ms: float) -> None:
        """Wait ``delay_ms`` unless the call is cancelled first."""
        sleeper = asyncio.ensure_future(schedule_retry(delay_ms, self._sleep))
        aborted = asyncio.ensure_future(handle.wait())
        try:
            await asyncio.wait(
                {sleeper, aborted}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            sleeper.cancel()
            aborted.cancel()
        if handle.aborted:
            logger.info(f"Request {handle.request_id} cancelled during backoff")
            raise RequestCancelledError()
        sleeper.result()

    async def _attempt(
        self,
        handle: CancellationHandle,
        timeout_ms: int,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any,
    ) -> httpx.Response:
        if handle.aborted:
            raise RequestCancelledError()
        if self._http.is_closed:
            raise RequestCancelledError("Client closed")

        deadline = CancellationHandle(handle.request_id)
        loop = asyncio.get_running_loop()
        timer = loop.call_later(timeout_ms / 1000, deadline.abort, REASON_TIMEOUT)

        send = asyncio.ensure_future(
            self._http.request(method, url, headers=headers, json=body)
        )
        aborted = asyncio.ensure_future(handle.wait())
        expired = asyncio.ensure_future(deadline.wait())
        try:
            done, _ = await asyncio.wait(
                {send, aborted, expired}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            send.cancel()
            raise
        finally:
            timer.cancel()
            aborted.cancel()
            expired.cancel()

        if send not in done:
            send.cancel()
            await asyncio.wait({send})
            if not send.cancelled():
                send.exception()
            if handle.reason == REASON_CANCELLED:
                raise RequestCancelledError()
            raise RequestTimeoutError()

        try:
            return send.result()
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError() from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or "Network error") from exc
        except RuntimeError as exc:
            if self._http.is_closed:
                raise RequestCancelledError("Client closed") from exc
            raise

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                logger.warning(
                    f"Response from {response.request.url} declared JSON but could not be parsed"
                )
        return response.text

    # ------------------------------------------------------------------
    async def get(self, endpoint: str, **options: Any) -> Any:
        return await self.request(endpoint, method="GET", **options)

    async def post(self, endpoint: str, body: Any = None, **options: Any) -> Any:
        return await self.request(endpoint, method="POST", body=body, **options)

    async def put(self, endpoint: str, body: Any = None, **options: Any) -> Any:
        return await self.request(endpoint, method="PUT", body=body, **options)

    async def delete(self, endpoint: str, **options: Any) -> Any:
        return await self.request(endpoint, method="DELETE", **options)

    async def patch(self, endpoint: str, body: Any = None, **options: Any) -> Any:
        return await self.request(endpoint, method="PATCH", body=body, **options)

    # ------------------------------------------------------------------
    def cancel_request(self, request_id: str) -> bool:
        """Abort the call registered under ``request_id``, attempt or backoff alike."""
        return self._cancellations.cancel(request_id)

    def cancel_all_requests(self) -> int:
        """Abort every in-flight call; none of them makes another attempt."""
        return self._cancellations.cancel_all()

    @property
    def in_flight(self) -> List[str]:
        return self._cancellations.pending
