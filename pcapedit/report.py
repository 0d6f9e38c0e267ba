# pcapedit/report.py
from __future__ import annotations

import sys
from typing import List, Optional, TextIO

from .compare import ComparisonResult, DiffEntry
from .core import NS_PER_SEC
from .disorder import DisorderReport


class Reporter:
    """Sink for human-readable result lines. Passed in by the caller."""

    def line(self, text: str = "") -> None:
        raise NotImplementedError


class StreamReporter(Reporter):
    def __init__(self, out: Optional[TextIO] = None):
        self._out = out

    def line(self, text: str = "") -> None:
        out = self._out if self._out is not None else sys.stdout
        print(text, file=out)


class MemoryReporter(Reporter):
    def __init__(self):
        self.lines: List[str] = []

    def line(self, text: str = "") -> None:
        self.lines.append(text)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def _entry_line(label: str, e: DiffEntry) -> str:
    return f"  [{label} {e.index}] length: {len(e.record.buf)} bytes, fingerprint: {e.fingerprint:016x}"


def _entries(reporter: Reporter, label: str, entries: List[DiffEntry], max_details: Optional[int]) -> None:
    shown = entries if max_details is None else entries[:max_details]
    for e in shown:
        reporter.line(_entry_line(label, e))
    if len(shown) < len(entries):
        reporter.line(f"  ... {len(entries) - len(shown)} more")


def render_comparison(result: ComparisonResult, reporter: Reporter,
                      show_details: bool = True, max_details: Optional[int] = None) -> None:
    reporter.line("PCAP content comparison:")
    reporter.line(f"- reference records: {result.ref_count}")
    reporter.line(f"- comparison records: {result.cmp_count}")
    reporter.line(f"- missing records: {len(result.missing)}")
    reporter.line(f"- extra records: {len(result.extra)}")

    if show_details and result.missing:
        reporter.line()
        reporter.line("Missing (in reference, not in comparison):")
        _entries(reporter, "ref", result.missing, max_details)
    if show_details and result.extra:
        reporter.line()
        reporter.line("Extra (in comparison, not in reference):")
        _entries(reporter, "cmp", result.extra, max_details)

    reporter.line()
    if result.identical:
        reporter.line("OK: capture contents are identical")
    else:
        reporter.line("DIFF: capture contents differ")


def render_disorder(report: DisorderReport, reporter: Reporter,
                    show_details: bool = True, max_details: Optional[int] = None) -> None:
    reporter.line(f"records: {report.record_count}")
    reporter.line(f"out-of-order records: {len(report.violations)}")
    if show_details and report.violations:
        shown = report.violations if max_details is None else report.violations[:max_details]
        for v in shown:
            reporter.line(f"  [#{v.index}] {v.delta_ns / NS_PER_SEC:.9f}s earlier than previous record")
        if len(shown) < len(report.violations):
            reporter.line(f"  ... {len(report.violations) - len(shown)} more")
    if report.truncated:
        reporter.line(f"TRUNCATED: read {report.bytes_consumed}/{report.file_size} bytes")
    if report.clean:
        reporter.line(f"OK: no out-of-order records ({report.record_count} records)")
    elif report.violations:
        reporter.line(f"DISORDER: {len(report.violations)} out-of-order records")


def render_stats(stats: dict, reporter: Reporter) -> None:
    reporter.line(
        f"{stats['operation']}: {stats['input']} -> {stats['output']} "
        f"records {stats['total_in']} -> {stats['total_out']} "
        f"(factor {stats['factor']}, {stats['elapsed_sec']}s)"
    )
