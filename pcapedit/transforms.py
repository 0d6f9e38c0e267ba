# pcapedit/transforms.py
"""
Timestamp transforms over a materialized CaptureStream.

Each function validates its parameters first, then builds and returns a new
stream; the input stream is left untouched. Internal arithmetic is in
integer nanoseconds, written back rounded half away from zero to whole
microseconds.
"""
from __future__ import annotations

import math
from fractions import Fraction
from typing import List

from .core import NS_PER_USEC, CaptureRecord, CaptureStream, div_round_half_away
from .errors import InsufficientPackets, InvalidParameter
from .utils import get_logger

log = get_logger("transforms")


def _as_fraction(factor, name: str) -> Fraction:
    if isinstance(factor, bool):
        raise InvalidParameter(f"{name} must be a number, got {factor!r}")
    try:
        f = float(factor)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {factor!r}") from None
    if not math.isfinite(f):
        raise InvalidParameter(f"{name} must be finite, got {factor!r}")
    return Fraction(f)


def _as_int_factor(factor, name: str) -> int:
    if isinstance(factor, bool) or not isinstance(factor, int):
        raise InvalidParameter(f"{name} must be an integer, got {factor!r}")
    if factor < 2:
        raise InvalidParameter(f"{name} must be > 1, got {factor}")
    return factor


def validate_compress_factor(factor) -> Fraction:
    f = _as_fraction(factor, "compression factor")
    if f <= 1:
        raise InvalidParameter(f"compression factor must be > 1.0, got {factor}")
    return f


def validate_stretch_factor(factor) -> Fraction:
    f = _as_fraction(factor, "stretch factor")
    if f <= 0:
        raise InvalidParameter(f"stretch factor must be > 0.0, got {factor}")
    return f


def validate_dilute_factor(factor) -> int:
    return _as_int_factor(factor, "dilution factor")


def validate_augment_factor(factor) -> int:
    return _as_int_factor(factor, "augment multiplier")


def _rescale(stream: CaptureStream, scale: Fraction) -> CaptureStream:
    """Scale every offset from the anchor (first record) by `scale`."""
    anchor = stream.records[0]
    t0 = anchor.timestamp_ns
    # offset * num / den, rounded to the microsecond
    num = scale.numerator
    den = scale.denominator * NS_PER_USEC
    out: List[CaptureRecord] = [anchor]
    for rec in stream.records[1:]:
        delta_us = div_round_half_away((rec.timestamp_ns - t0) * num, den)
        out.append(rec.with_timestamp_ns(t0 + delta_us * NS_PER_USEC))
    return stream.derive(out)


def time_compress(stream: CaptureStream, factor) -> CaptureStream:
    """Shrink the time axis: offset' = offset / factor (factor > 1)."""
    f = validate_compress_factor(factor)
    stream.require_records("time-compress")
    out = _rescale(stream, 1 / f)
    log.info(
        f"time-compress: records={len(out)} factor={factor} "
        f"span {stream.span_ns}ns -> {out.span_ns}ns (x{1.0 / float(f):.4f})"
    )
    return out


def time_stretch(stream: CaptureStream, factor) -> CaptureStream:
    """Scale the time axis: offset' = offset * factor (factor > 0)."""
    f = validate_stretch_factor(factor)
    stream.require_records("time-stretch")
    out = _rescale(stream, f)
    log.info(
        f"time-stretch: records={len(out)} factor={factor} "
        f"span {stream.span_ns}ns -> {out.span_ns}ns"
    )
    return out


def dilute_targets(first_ns: int, span_ns: int, target_count: int) -> List[int]:
    """Ideal instants: first_ns + i * (span // target_count)."""
    step = span_ns // target_count
    return [first_ns + i * step for i in range(target_count)]


def select_nearest(times: List[int], targets: List[int]) -> List[int]:
    """
    For each target in order, pick the nearest unselected index scanning
    forward from the previous pick. The scan stops once the distance grows;
    ties keep the earlier index. Target i may not go past len(times) - (T - i)
    so every later target still has a record left.
    """
    n = len(times)
    total = len(targets)
    picks: List[int] = []
    cursor = 0
    for i, target in enumerate(targets):
        last_allowed = n - (total - i)
        best_index = cursor
        best_diff = None
        for j in range(cursor, last_allowed + 1):
            diff = abs(times[j] - target)
            if best_diff is None or diff < best_diff:
                best_diff = diff
                best_index = j
            elif diff > best_diff:
                break
        picks.append(best_index)
        cursor = best_index + 1
    return picks


def dilute(stream: CaptureStream, factor) -> CaptureStream:
    """
    Keep floor(n / factor) records spread over the original span. Kept records
    retain their own timestamps.
    """
    k = validate_dilute_factor(factor)
    stream.require_records("dilute")
    n = len(stream)
    if n < k:
        raise InsufficientPackets(f"record count ({n}) is smaller than dilution factor ({k})")

    target_count = n // k
    times = [r.timestamp_ns for r in stream.records]
    targets = dilute_targets(times[0], stream.span_ns, target_count)
    picks = select_nearest(times, targets)
    out = stream.derive(stream.records[p] for p in picks)
    log.info(f"dilute: records {n} -> {len(out)} factor={k}")
    return out


def augment(stream: CaptureStream, factor) -> CaptureStream:
    """
    Produce n * factor records, evenly spaced over the original span. Output i
    reuses the content of input i mod n.
    """
    m = validate_augment_factor(factor)
    stream.require_records("augment")
    n = len(stream)
    total = n * m
    t0 = stream.records[0].timestamp_ns
    span = stream.span_ns
    out: List[CaptureRecord] = []
    for i in range(total):
        ts = t0 + div_round_half_away(span * i, total - 1)
        out.append(stream.records[i % n].with_timestamp_ns(ts))
    log.info(f"augment: records {n} -> {total} multiplier={m} span={span}ns")
    return stream.derive(out)
