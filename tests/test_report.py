import io

from conftest import labelled, make_stream
from pcapedit.compare import compare_streams
from pcapedit.disorder import detect_disorder
from pcapedit.report import MemoryReporter, StreamReporter, render_comparison, render_disorder


def test_identical_comparison_verdict():
    s = labelled("ABC")
    rep = MemoryReporter()
    render_comparison(compare_streams(s, s), rep)
    assert rep.lines[-1] == "OK: capture contents are identical"
    assert "- missing records: 0" in rep.lines


def test_detail_lines_are_capped():
    rep = MemoryReporter()
    render_comparison(compare_streams(labelled("ABCDEF"), labelled("")), rep, max_details=2)
    details = [line for line in rep.lines if line.startswith("  [ref")]
    assert len(details) == 2
    assert "  ... 4 more" in rep.lines
    assert details[0].startswith("  [ref 0] length: 1 bytes, fingerprint: ")


def test_disorder_truncation_line():
    s = make_stream([0, 1])
    s.bytes_consumed, s.file_size = 70, 80
    rep = MemoryReporter()
    render_disorder(detect_disorder(s), rep)
    assert "TRUNCATED: read 70/80 bytes" in rep.lines
    assert not any(line.startswith("OK") for line in rep.lines)


def test_stream_reporter_writes_lines():
    buf = io.StringIO()
    StreamReporter(buf).line("hello")
    assert buf.getvalue() == "hello\n"
