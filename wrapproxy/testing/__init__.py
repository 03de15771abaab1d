"""In-process test helpers: a scriptable fake upstream."""

from .fake_upstream import FakeUpstream, UpstreamResponse, build_stream_chunks, encode_sse_event

__all__ = [
    "FakeUpstream",
    "UpstreamResponse",
    "build_stream_chunks",
    "encode_sse_event",
]
