# pcapedit/cli.py
import argparse
import sys
from typing import Optional, Sequence

from . import pipeline
from .config import load_config
from .errors import PcapEditError
from .report import Reporter, StreamReporter, render_comparison, render_disorder, render_stats
from .utils import log, setup, shutdown


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pcapedit", description="PCAP timestamp and density editor")
    p.add_argument("-l", "--log-level", dest="log_level", default=None,
                   choices=["debug", "info", "warning", "error", "DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Log level (default: from config, else info)")
    p.add_argument("--log-dir", dest="log_dir", default=None,
                   help="Also write a daily-rotated log file into this directory")
    p.add_argument("--config", help="YAML config file")

    sub = p.add_subparsers(dest="command", metavar="command")
    sub.required = True

    def transform(name, help_text, ftype, factor_help):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("input", help="Input pcap")
        sp.add_argument("output", help="Output pcap")
        sp.add_argument("-f", "--factor", type=ftype, required=True, help=factor_help)
        sp.add_argument("--metadata", action="store_true",
                        help="Write <output>.metadata.json with run stats")
        return sp

    transform("time-compress", "Compress the time axis", float, "Compression factor (> 1.0)")
    transform("time-stretch", "Stretch the time axis", float, "Stretch factor (> 0.0)")
    transform("dilute", "Keep 1/N of the records over the same span", int, "Dilution factor (integer > 1)")
    transform("augment", "Repeat records N times over the same span", int, "Multiplier (integer > 1)")

    sp = sub.add_parser("disorder-detect", help="Report out-of-order timestamps")
    sp.add_argument("input", help="Input pcap")
    sp.add_argument("--report-json", dest="report_json", help="Write a JSON summary to this path")

    sp = sub.add_parser("compare", help="Diff two captures that are in roughly the same order")
    sp.add_argument("reference", help="Reference pcap")
    sp.add_argument("comparison", help="Comparison pcap")
    sp.add_argument("--ignore-timestamp", dest="ignore_timestamp", action="store_true",
                    help="Fingerprint caplen/origlen together with the payload "
                         "(timestamps are not hashed in either mode)")
    sp.add_argument("--lookahead", type=int, default=None,
                    help="Resync window in records (default: from config, else 100)")
    sp.add_argument("--report-json", dest="report_json", help="Write a JSON summary to this path")
    return p


def run(args, reporter: Reporter) -> int:
    cfg = load_config(args.config).merged(
        log_level=args.log_level,
        log_dir=args.log_dir,
        lookahead=getattr(args, "lookahead", None),
    )
    setup(log_dir=cfg.log_dir, level=cfg.log_level, console=cfg.console)
    max_details = cfg.max_details

    if args.command in pipeline.TRANSFORMS:
        stats = pipeline.apply_transform_file(
            args.command, args.input, args.output, args.factor, write_metadata=args.metadata
        )
        render_stats(stats, reporter)
        return 0

    if args.command == "disorder-detect":
        report = pipeline.detect_disorder_file(args.input, report_json=args.report_json)
        render_disorder(report, reporter, show_details=cfg.show_details, max_details=max_details)
        return 0

    if args.command == "compare":
        result = pipeline.compare_files(
            args.reference, args.comparison,
            ignore_timestamp=args.ignore_timestamp,
            lookahead=cfg.lookahead,
            report_json=args.report_json,
        )
        render_comparison(result, reporter, show_details=cfg.show_details, max_details=max_details)
        return 0

    raise SystemExit(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None, reporter: Optional[Reporter] = None) -> int:
    args = build_parser().parse_args(argv)
    reporter = reporter or StreamReporter(sys.stdout)
    try:
        return run(args, reporter)
    except PcapEditError as e:
        log.error(f"[FAIL] {args.command}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
