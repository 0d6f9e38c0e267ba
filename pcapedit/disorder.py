# pcapedit/disorder.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .core import NS_PER_SEC, CaptureStream
from .utils import get_logger

log = get_logger("disorder")


@dataclass(frozen=True)
class Violation:
    index: int       # 0-based position of the late record
    delta_ns: int    # previous - current, always > 0
    prev_ns: int
    current_ns: int


@dataclass
class DisorderReport:
    record_count: int = 0
    violations: List[Violation] = field(default_factory=list)
    truncated: bool = False
    bytes_consumed: Optional[int] = None
    file_size: Optional[int] = None

    @property
    def clean(self) -> bool:
        return not self.violations and not self.truncated

    def as_dict(self) -> dict:
        return {
            "record_count": self.record_count,
            "violation_count": len(self.violations),
            "violations": [
                {"index": v.index, "delta_ns": v.delta_ns, "prev_ns": v.prev_ns, "current_ns": v.current_ns}
                for v in self.violations
            ],
            "truncated": self.truncated,
            "bytes_consumed": self.bytes_consumed,
            "file_size": self.file_size,
        }


def _fmt_ns(ns: int) -> str:
    sec, frac = divmod(ns, NS_PER_SEC)
    return f"{sec}.{frac:09d}"


def detect_disorder(stream: CaptureStream) -> DisorderReport:
    """One forward pass; every record earlier than its predecessor is a violation."""
    report = DisorderReport(
        record_count=len(stream),
        truncated=stream.truncated,
        bytes_consumed=stream.bytes_consumed,
        file_size=stream.file_size,
    )
    prev_ns = None
    for idx, rec in enumerate(stream.records):
        cur_ns = rec.timestamp_ns
        if prev_ns is not None and cur_ns < prev_ns:
            v = Violation(index=idx, delta_ns=prev_ns - cur_ns, prev_ns=prev_ns, current_ns=cur_ns)
            report.violations.append(v)
            log.warning(
                f"Out-of-order record #{idx}: ts {_fmt_ns(cur_ns)} < previous {_fmt_ns(prev_ns)} "
                f"(delta {v.delta_ns / NS_PER_SEC:.9f}s)"
            )
        prev_ns = cur_ns

    if report.truncated:
        log.warning(
            f"Input not fully read: {report.bytes_consumed}/{report.file_size} bytes "
            f"({report.record_count} records)"
        )
    log.info(
        f"disorder-detect: records={report.record_count} violations={len(report.violations)} "
        f"truncated={report.truncated}"
    )
    return report
