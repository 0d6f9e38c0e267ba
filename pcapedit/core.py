# pcapedit/core.py
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .errors import EmptyStream, TimestampOutOfRange

NS_PER_USEC = 1_000
USEC_PER_SEC = 1_000_000
NS_PER_SEC = 1_000_000_000
U32_MAX = 0xFFFFFFFF


def div_round_half_away(num: int, den: int) -> int:
    """Integer division rounded to nearest, ties away from zero."""
    if den == 0:
        raise ZeroDivisionError("den must be non-zero")
    if den < 0:
        num, den = -num, -den
    q, r = divmod(abs(num), den)
    if 2 * r >= den:
        q += 1
    return q if num >= 0 else -q


def ns_to_sec_usec(ns: int):
    """Split a nanosecond instant into (seconds, microseconds), rounding to the microsecond."""
    usec_total = div_round_half_away(ns, NS_PER_USEC)
    sec, usec = divmod(usec_total, USEC_PER_SEC)
    return sec, usec


@dataclass(frozen=True)
class CaptureRecord:
    ts_sec: int
    ts_usec: int
    caplen: int
    origlen: int
    buf: bytes

    def __post_init__(self) -> None:
        if not (0 <= self.ts_usec < USEC_PER_SEC):
            raise TimestampOutOfRange(f"ts_usec out of range: {self.ts_usec}")
        if not (0 <= self.ts_sec <= U32_MAX):
            raise TimestampOutOfRange(f"ts_sec out of range: {self.ts_sec}")

    @classmethod
    def from_payload(cls, buf: bytes, ts_ns: int = 0, origlen: Optional[int] = None) -> "CaptureRecord":
        sec, usec = ns_to_sec_usec(ts_ns)
        return cls(ts_sec=sec, ts_usec=usec, caplen=len(buf),
                   origlen=len(buf) if origlen is None else origlen, buf=bytes(buf))

    @property
    def timestamp_ns(self) -> int:
        return self.ts_sec * NS_PER_SEC + self.ts_usec * NS_PER_USEC

    def with_timestamp_ns(self, ns: int) -> "CaptureRecord":
        sec, usec = ns_to_sec_usec(ns)
        return dataclasses.replace(self, ts_sec=sec, ts_usec=usec)


@dataclass(frozen=True)
class PcapHeader:
    byte_order: str = "<"  # "<" little, ">" big
    v_major: int = 2
    v_minor: int = 4
    thiszone: int = 0
    sigfigs: int = 0
    snaplen: int = 262144
    linktype: int = 1


@dataclass
class CaptureStream:
    """
    Materialized capture: file header plus every record in capture order.

    bytes_consumed/file_size are filled by the reader; a stream built in
    memory has neither and is never truncated.
    """
    records: List[CaptureRecord] = field(default_factory=list)
    header: PcapHeader = field(default_factory=PcapHeader)
    source: Optional[str] = None
    bytes_consumed: Optional[int] = None
    file_size: Optional[int] = None

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def __getitem__(self, idx):
        return self.records[idx]

    @property
    def truncated(self) -> bool:
        if self.bytes_consumed is None or self.file_size is None:
            return False
        return self.bytes_consumed < self.file_size

    @property
    def span_ns(self) -> int:
        if not self.records:
            return 0
        return self.records[-1].timestamp_ns - self.records[0].timestamp_ns

    def require_records(self, what: str = "operation") -> None:
        if not self.records:
            raise EmptyStream(f"{what} needs at least one record (source={self.source})")

    def derive(self, records: Iterable[CaptureRecord]) -> "CaptureStream":
        """New stream with this stream's header and the given records."""
        return CaptureStream(records=list(records), header=self.header, source=self.source)
