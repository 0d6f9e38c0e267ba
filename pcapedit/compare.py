# pcapedit/compare.py
"""
Bounded-lookahead diff of two capture streams.

The aligner is a two-cursor state machine. Each step takes exactly one of
four transitions, tried in this order:

    MATCH       A[i] == B[j]; both cursors advance
    RESYNC_B    A[i] found in B[j:j+L] at k; B[j:k] are extra
    RESYNC_A    B[j] found in A[i:i+L] at k; A[i:k] are missing
    SUBSTITUTE  no resync point; A[i] missing, B[j] extra

RESYNC_B is always tried before RESYNC_A, so when both resync points exist
the diff reports extras rather than missing records.
"""
from __future__ import annotations

import enum
import hashlib
import struct
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Tuple

from .core import CaptureRecord, CaptureStream
from .errors import InvalidParameter
from .utils import get_logger

log = get_logger("compare")

DEFAULT_LOOKAHEAD = 100

_LENGTHS = struct.Struct(">II")


def _digest(*parts: bytes) -> int:
    h = hashlib.blake2b(digest_size=8)
    for p in parts:
        h.update(p)
    return int.from_bytes(h.digest(), "big")


def payload_fingerprint(rec: CaptureRecord) -> int:
    return _digest(rec.buf)


def framed_fingerprint(rec: CaptureRecord) -> int:
    """Lengths (caplen, origlen as big-endian u32) followed by the payload."""
    return _digest(_LENGTHS.pack(rec.caplen, rec.origlen), rec.buf)


def fingerprint_func(ignore_timestamp: bool) -> Callable[[CaptureRecord], int]:
    # Neither mode hashes timestamp bytes; ignore_timestamp adds caplen/origlen.
    return framed_fingerprint if ignore_timestamp else payload_fingerprint


def fingerprint_streams(
    a: Sequence[CaptureRecord], b: Sequence[CaptureRecord], fp: Callable[[CaptureRecord], int]
) -> Tuple[List[int], List[int]]:
    """Fingerprint both streams on two workers; each list keeps record order."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fingerprint") as ex:
        fa = ex.submit(lambda: [fp(r) for r in a])
        fb = ex.submit(lambda: [fp(r) for r in b])
        return fa.result(), fb.result()


def validate_lookahead(lookahead) -> int:
    if isinstance(lookahead, bool) or not isinstance(lookahead, int) or lookahead < 1:
        raise InvalidParameter(f"lookahead must be an integer >= 1, got {lookahead!r}")
    return lookahead


class Transition(enum.Enum):
    MATCH = "match"
    RESYNC_B = "resync_b"
    RESYNC_A = "resync_a"
    SUBSTITUTE = "substitute"


@dataclass(frozen=True)
class DiffEntry:
    index: int
    record: CaptureRecord
    fingerprint: int

    def __iter__(self):
        # unpacks like the (index, record) pair
        return iter((self.index, self.record))


@dataclass
class ComparisonResult:
    ref_count: int
    cmp_count: int
    missing: List[DiffEntry] = field(default_factory=list)
    extra: List[DiffEntry] = field(default_factory=list)
    transitions: Counter = field(default_factory=Counter)

    @property
    def identical(self) -> bool:
        return not self.missing and not self.extra

    def as_dict(self) -> dict:
        return {
            "ref_count": self.ref_count,
            "cmp_count": self.cmp_count,
            "missing_count": len(self.missing),
            "extra_count": len(self.extra),
            "missing": [{"index": e.index, "length": len(e.record.buf), "fingerprint": f"{e.fingerprint:016x}"}
                        for e in self.missing],
            "extra": [{"index": e.index, "length": len(e.record.buf), "fingerprint": f"{e.fingerprint:016x}"}
                      for e in self.extra],
            "transitions": {t.value: self.transitions.get(t, 0) for t in Transition},
        }


class SequenceAligner:
    """Walks two fingerprinted streams and classifies every unmatched record."""

    def __init__(self, ref: Sequence[CaptureRecord], cmp: Sequence[CaptureRecord],
                 ref_fp: Sequence[int], cmp_fp: Sequence[int], lookahead: int = DEFAULT_LOOKAHEAD):
        validate_lookahead(lookahead)
        if len(ref) != len(ref_fp) or len(cmp) != len(cmp_fp):
            raise ValueError("fingerprint list length does not match its stream")
        self.ref, self.cmp = ref, cmp
        self.ref_fp, self.cmp_fp = ref_fp, cmp_fp
        self.lookahead = lookahead
        self.i = 0
        self.j = 0
        self.result = ComparisonResult(ref_count=len(ref), cmp_count=len(cmp))

    @property
    def running(self) -> bool:
        return self.i < len(self.ref) and self.j < len(self.cmp)

    def _missing(self, idx: int) -> None:
        self.result.missing.append(DiffEntry(idx, self.ref[idx], self.ref_fp[idx]))

    def _extra(self, idx: int) -> None:
        self.result.extra.append(DiffEntry(idx, self.cmp[idx], self.cmp_fp[idx]))

    def _find(self, fps: Sequence[int], start: int, wanted: int) -> int:
        stop = min(start + self.lookahead, len(fps))
        for k in range(start, stop):
            if fps[k] == wanted:
                return k
        return -1

    def step(self) -> Transition:
        i, j = self.i, self.j
        if self.ref_fp[i] == self.cmp_fp[j]:
            self.i, self.j = i + 1, j + 1
            t = Transition.MATCH
        else:
            k = self._find(self.cmp_fp, j, self.ref_fp[i])
            if k >= 0:
                for idx in range(j, k):
                    self._extra(idx)
                self.i, self.j = i + 1, k + 1
                t = Transition.RESYNC_B
            else:
                k = self._find(self.ref_fp, i, self.cmp_fp[j])
                if k >= 0:
                    for idx in range(i, k):
                        self._missing(idx)
                    self.i, self.j = k + 1, j + 1
                    t = Transition.RESYNC_A
                else:
                    self._missing(i)
                    self._extra(j)
                    self.i, self.j = i + 1, j + 1
                    t = Transition.SUBSTITUTE
        self.result.transitions[t] += 1
        return t

    def run(self) -> ComparisonResult:
        while self.running:
            self.step()
        for idx in range(self.i, len(self.ref)):
            self._missing(idx)
        for idx in range(self.j, len(self.cmp)):
            self._extra(idx)
        self.i, self.j = len(self.ref), len(self.cmp)
        return self.result


def compare_streams(ref: CaptureStream, cmp: CaptureStream, ignore_timestamp: bool = False,
                    lookahead: int = DEFAULT_LOOKAHEAD) -> ComparisonResult:
    """Diff cmp against ref: records only in ref are missing, records only in cmp are extra."""
    validate_lookahead(lookahead)
    fp = fingerprint_func(ignore_timestamp)
    ref_fp, cmp_fp = fingerprint_streams(ref.records, cmp.records, fp)
    result = SequenceAligner(ref.records, cmp.records, ref_fp, cmp_fp, lookahead=lookahead).run()
    log.info(
        f"compare: ref={result.ref_count} cmp={result.cmp_count} "
        f"missing={len(result.missing)} extra={len(result.extra)} "
        f"ignore_timestamp={ignore_timestamp} lookahead={lookahead}"
    )
    return result
