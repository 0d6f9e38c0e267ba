# pcapedit/pipeline.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, Optional

from . import stream as pcap_stream
from . import io as pcap_io
from .compare import ComparisonResult, DEFAULT_LOOKAHEAD, compare_streams, validate_lookahead
from .core import CaptureStream
from .disorder import DisorderReport, detect_disorder
from .errors import WriteFailure
from .transforms import (
    augment, dilute, time_compress, time_stretch,
    validate_augment_factor, validate_compress_factor,
    validate_dilute_factor, validate_stretch_factor,
)
from .utils import atomic_write_json, get_logger, now_iso

log = get_logger("pipeline")

# name -> (validator, transform)
TRANSFORMS: Dict[str, tuple] = {
    "time-compress": (validate_compress_factor, time_compress),
    "time-stretch": (validate_stretch_factor, time_stretch),
    "dilute": (validate_dilute_factor, dilute),
    "augment": (validate_augment_factor, augment),
}


def metadata_path(out_pcap) -> Path:
    out_pcap = Path(out_pcap)
    return out_pcap.with_name(f"{out_pcap.name}.metadata.json")


def apply_transform_file(
    operation: str,
    in_pcap,
    out_pcap,
    factor,
    write_metadata: bool = False,
) -> Dict[str, Any]:
    """
    Load in_pcap, run one transform, save to out_pcap. Parameters are checked
    before the input is opened and the output is only created once the
    transform has succeeded.
    """
    try:
        validator, transform = TRANSFORMS[operation]
    except KeyError:
        raise ValueError(f"Unknown transform: {operation}") from None
    validator(factor)

    t0 = time.time()
    src = pcap_stream.load(in_pcap)
    out = transform(src, factor)
    written = pcap_io.save(out_pcap, out)
    dur = time.time() - t0

    stats = {
        "operation": operation,
        "input": str(in_pcap),
        "output": str(out_pcap),
        "factor": factor,
        "total_in": len(src),
        "total_out": written,
        "span_in_ns": src.span_ns,
        "span_out_ns": out.span_ns,
        "input_truncated": src.truncated,
        "timestamp": now_iso(),
        "elapsed_sec": round(dur, 3),
    }
    if write_metadata:
        try:
            atomic_write_json(metadata_path(out_pcap), stats)
        except WriteFailure:
            Path(out_pcap).unlink()
            raise
    log.info(f"[DONE] {operation} {in_pcap} -> {out_pcap} in={len(src)} out={written} in {stats['elapsed_sec']}s")
    return stats


def time_compress_file(in_pcap, out_pcap, factor: float, **kw) -> Dict[str, Any]:
    return apply_transform_file("time-compress", in_pcap, out_pcap, factor, **kw)


def time_stretch_file(in_pcap, out_pcap, factor: float, **kw) -> Dict[str, Any]:
    return apply_transform_file("time-stretch", in_pcap, out_pcap, factor, **kw)


def dilute_file(in_pcap, out_pcap, factor: int, **kw) -> Dict[str, Any]:
    return apply_transform_file("dilute", in_pcap, out_pcap, factor, **kw)


def augment_file(in_pcap, out_pcap, factor: int, **kw) -> Dict[str, Any]:
    return apply_transform_file("augment", in_pcap, out_pcap, factor, **kw)


def detect_disorder_file(in_pcap, report_json: Optional[str] = None) -> DisorderReport:
    src = pcap_stream.load(in_pcap)
    report = detect_disorder(src)
    if report_json:
        doc = report.as_dict()
        doc.update({"input": str(in_pcap), "timestamp": now_iso()})
        atomic_write_json(Path(report_json), doc)
    return report


def compare_files(
    ref_pcap,
    cmp_pcap,
    ignore_timestamp: bool = False,
    lookahead: int = DEFAULT_LOOKAHEAD,
    report_json: Optional[str] = None,
) -> ComparisonResult:
    validate_lookahead(lookahead)
    ref: CaptureStream = pcap_stream.load(ref_pcap)
    cmp: CaptureStream = pcap_stream.load(cmp_pcap)
    result = compare_streams(ref, cmp, ignore_timestamp=ignore_timestamp, lookahead=lookahead)
    if report_json:
        doc = result.as_dict()
        doc.update({
            "reference": str(ref_pcap),
            "comparison": str(cmp_pcap),
            "ignore_timestamp": ignore_timestamp,
            "lookahead": lookahead,
            "timestamp": now_iso(),
        })
        atomic_write_json(Path(report_json), doc)
    return result
