from __future__ import annotations

import pytest

from pcapedit.core import CaptureRecord, CaptureStream, NS_PER_USEC

USEC = NS_PER_USEC
BASE_NS = 1_700_000_000 * 1_000_000_000


def rec(payload: bytes, ts_us: int, origlen=None) -> CaptureRecord:
    """Record at BASE + ts_us microseconds."""
    return CaptureRecord.from_payload(payload, ts_ns=BASE_NS + ts_us * USEC, origlen=origlen)


def make_stream(times_us, payloads=None) -> CaptureStream:
    if payloads is None:
        payloads = [f"pkt-{i:05d}".encode() for i in range(len(times_us))]
    return CaptureStream(records=[rec(p, t) for p, t in zip(payloads, times_us)])


def labelled(labels: str, step_us: int = 1000) -> CaptureStream:
    """One record per character, payload = the character, evenly spaced."""
    return make_stream([i * step_us for i in range(len(labels))], [c.encode() for c in labels])


@pytest.fixture
def stream10():
    # irregular, strictly increasing
    return make_stream([0, 7, 19, 250, 251, 1_000, 1_333, 2_000_001, 2_500_000, 3_000_000])


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    from pcapedit.utils import shutdown
    shutdown()
