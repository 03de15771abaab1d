"""Sends translated requests upstream with a one-shot model fallback."""

import enum
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx

from ..translation.types import TranslatedRequest
from .backend import (
    Upstream,
    build_outbound_headers,
    format_httpx_error,
    truncate_for_log,
)
from .exceptions import UpstreamConnectionError

logger = logging.getLogger("wrapproxy")

MODEL_NOT_FOUND_STATUSES = {400, 422}
MODEL_NOT_FOUND_MARKERS = (
    "not found",
    "not exist",
    "invalid model",
    "does not exist",
    "no such model",
)


class AttemptState(enum.Enum):
    """Position in the attempt sequence of one inbound request."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass
class DispatchResult:
    """An upstream response that is still open.

    The caller owns ``response`` and must close it, either by reading the
    body or by closing it once a stream ends. Error responses arrive with
    their body already read and the connection released.
    """

    response: httpx.Response
    used_model: str
    attempts: int


def is_model_not_found(status_code: int, body: bytes) -> bool:
    """Classify an error response as an unknown-model rejection."""
    if status_code == 404:
        return True
    if status_code not in MODEL_NOT_FOUND_STATUSES:
        return False
    text = body.decode("utf-8", errors="replace").lower()
    if "model" not in text:
        return False
    return any(marker in text for marker in MODEL_NOT_FOUND_MARKERS)


class UpstreamDispatcher:
    """Builds and sends upstream requests for one variant."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        upstream: Upstream,
        fallback_model: Optional[str] = None,
        forward_client_headers: bool = False,
    ) -> None:
        self.client = client
        self.upstream = upstream
        self.fallback_model = fallback_model
        self.forward_client_headers = forward_client_headers

    def _can_fall_back(self) -> bool:
        return bool(self.fallback_model)

    async def send(
        self,
        request: TranslatedRequest,
        api_key: str,
        method: str = "POST",
        path: str = "",
        query: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> DispatchResult:
        """Send ``request`` upstream, retrying once with the fallback model.

        A retry happens only when the first attempt failed to connect or was
        rejected because the model is unknown. Any other response is
        returned as received, error statuses included.

        Raises:
            UpstreamConnectionError: If the final attempt could not reach
                the upstream.
        """
        url = self.upstream.build_url(path, query)
        outbound_headers = build_outbound_headers(
            headers if self.forward_client_headers else None,
            api_key,
            request.stream,
        )

        state = AttemptState.PRIMARY
        current = request
        attempts = 0
        while True:
            attempts += 1
            logger.info(
                "Sending %s attempt to %s (model=%s, stream=%s)",
                state.value,
                url,
                current.model,
                current.stream,
            )
            try:
                response = await self._send_once(method, url, outbound_headers, current)
            except httpx.RequestError as exc:
                detail = format_httpx_error(exc, url=url, timeout=self.upstream.timeout)
                logger.error(f"Upstream request failed for model {current.model}: {detail}")
                if state is AttemptState.PRIMARY and self._can_fall_back():
                    state, current = self._next_attempt(current, "connection failure")
                    continue
                raise UpstreamConnectionError(
                    "Error forwarding request", model=current.model
                ) from exc

            if response.status_code < 400:
                return DispatchResult(response=response, used_model=current.model, attempts=attempts)

            try:
                body = await response.aread()
            except httpx.RequestError as exc:
                detail = format_httpx_error(exc, url=url, timeout=self.upstream.timeout)
                logger.error(
                    f"Failed to read upstream {response.status_code} body for model "
                    f"{current.model}: {detail}"
                )
                if state is AttemptState.PRIMARY and self._can_fall_back():
                    state, current = self._next_attempt(current, "broken error response")
                    continue
                raise UpstreamConnectionError(
                    "Error forwarding request", model=current.model
                ) from exc
            finally:
                await response.aclose()

            logger.warning(
                "Upstream returned %s for model %s: %s",
                response.status_code,
                current.model,
                truncate_for_log(body),
            )
            if (
                state is AttemptState.PRIMARY
                and self._can_fall_back()
                and is_model_not_found(response.status_code, body)
            ):
                state, current = self._next_attempt(current, f"status {response.status_code}")
                continue
            return DispatchResult(response=response, used_model=current.model, attempts=attempts)

    def _next_attempt(
        self, request: TranslatedRequest, reason: str
    ) -> tuple[AttemptState, TranslatedRequest]:
        logger.warning(
            "Model %s unavailable (%s), retrying with fallback model %s",
            request.model,
            reason,
            self.fallback_model,
        )
        return AttemptState.FALLBACK, request.with_model(self.fallback_model)

    async def _send_once(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        request: TranslatedRequest,
    ) -> httpx.Response:
        body = json.dumps(request.payload).encode("utf-8")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Upstream request body: %s", truncate_for_log(body))
        outbound = self.client.build_request(
            method,
            url,
            headers=headers,
            content=body,
            timeout=httpx.Timeout(self.upstream.timeout),
        )
        return await self.client.send(outbound, stream=True)
