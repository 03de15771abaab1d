"""SSE stream relay: rewrites the model of every data event."""

import json
import logging
from typing import AsyncIterator

import httpx

logger = logging.getLogger("wrapproxy")

DATA_PREFIX = b"data:"
DONE_MARKER = b"[DONE]"
DONE_EVENT = b"data: [DONE]\n\n"


async def iter_sse_lines(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Split a byte stream into lines, keeping each line terminator.

    A trailing line without a terminator is yielded at end of stream.
    """
    buffer = b""
    async for chunk in chunks:
        if not chunk:
            continue
        buffer += chunk
        while True:
            newline = buffer.find(b"\n")
            if newline < 0:
                break
            line, buffer = buffer[: newline + 1], buffer[newline + 1:]
            yield line
    if buffer:
        yield buffer


def rewrite_sse_line(line: bytes, model: str) -> tuple[bytes, bool]:
    """Rewrite one SSE line.

    Returns the bytes to emit and whether the stream is finished.
    """
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return line, False

    data = stripped[len(DATA_PREFIX):].strip()
    if data == DONE_MARKER:
        return DONE_EVENT, True

    try:
        event = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug("Forwarding undecodable SSE data line unchanged")
        return line, False
    if not isinstance(event, dict):
        return line, False

    event["model"] = model
    encoded = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    return b"data: " + encoded.encode("utf-8") + b"\n\n", False


async def relay_sse_stream(lines: AsyncIterator[bytes], model: str) -> AsyncIterator[bytes]:
    """Re-emit upstream SSE lines with ``model`` rewritten, one chunk per line.

    Nothing is emitted after ``data: [DONE]``.
    """
    async for line in lines:
        chunk, done = rewrite_sse_line(line, model)
        yield chunk
        if done:
            return


async def relay_upstream_response(response: httpx.Response, model: str) -> AsyncIterator[bytes]:
    """Relay an open upstream stream to the client and always close it."""
    chunks = 0
    try:
        async for chunk in relay_sse_stream(iter_sse_lines(response.aiter_bytes()), model):
            chunks += 1
            yield chunk
    except httpx.HTTPError as exc:
        logger.error(f"Upstream stream aborted after {chunks} chunks: {exc.__class__.__name__}: {exc}")
    finally:
        await response.aclose()
        logger.debug(f"Closed upstream stream for model {model} after {chunks} chunks")
