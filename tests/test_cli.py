import json

import pytest

from conftest import labelled, make_stream
from pcapedit.cli import main
from pcapedit.io import save
from pcapedit.report import MemoryReporter
from pcapedit.stream import load


@pytest.fixture
def in_pcap(tmp_path, stream10):
    path = tmp_path / "in.pcap"
    save(path, stream10)
    return path


def test_time_compress(tmp_path, in_pcap):
    out = tmp_path / "out.pcap"
    rep = MemoryReporter()
    assert main(["time-compress", str(in_pcap), str(out), "--factor", "2"], reporter=rep) == 0
    assert len(load(out)) == 10
    assert "records 10 -> 10" in rep.text


def test_augment_with_metadata(tmp_path, in_pcap):
    out = tmp_path / "aug.pcap"
    assert main(["augment", str(in_pcap), str(out), "-f", "3", "--metadata"], reporter=MemoryReporter()) == 0
    meta = json.loads((tmp_path / "aug.pcap.metadata.json").read_text(encoding="utf-8"))
    assert meta["total_out"] == 30


def test_invalid_factor_exits_nonzero_without_output(tmp_path, in_pcap, capsys):
    out = tmp_path / "out.pcap"
    assert main(["time-compress", str(in_pcap), str(out), "--factor", "0.5"], reporter=MemoryReporter()) == 1
    assert not out.exists()
    assert "compression factor" in capsys.readouterr().err


def test_dilute_insufficient(tmp_path, in_pcap):
    out = tmp_path / "out.pcap"
    assert main(["dilute", str(in_pcap), str(out), "--factor", "11"], reporter=MemoryReporter()) == 1
    assert not out.exists()


def test_non_integer_dilute_factor_is_usage_error(tmp_path, in_pcap):
    with pytest.raises(SystemExit) as ei:
        main(["dilute", str(in_pcap), str(tmp_path / "o.pcap"), "--factor", "2.5"])
    assert ei.value.code == 2


def test_missing_input(tmp_path):
    rep = MemoryReporter()
    assert main(["disorder-detect", str(tmp_path / "absent.pcap")], reporter=rep) == 1


def test_disorder_detect(tmp_path):
    path = tmp_path / "dis.pcap"
    save(path, make_stream([0, 10, 5, 20]))
    rep = MemoryReporter()
    assert main(["disorder-detect", str(path)], reporter=rep) == 0
    assert "out-of-order records: 1" in rep.lines
    assert "  [#2] 0.000005000s earlier than previous record" in rep.lines


def test_compare_reports_differences_with_success_status(tmp_path):
    ref, cmp = tmp_path / "ref.pcap", tmp_path / "cmp.pcap"
    save(ref, labelled("ABCDE"))
    save(cmp, labelled("ABDE"))
    rep = MemoryReporter()
    report = tmp_path / "r.json"
    assert main(["compare", str(ref), str(cmp), "--report-json", str(report)], reporter=rep) == 0
    assert "- missing records: 1" in rep.lines
    assert rep.lines[-1] == "DIFF: capture contents differ"
    assert json.loads(report.read_text(encoding="utf-8"))["missing"][0]["index"] == 2


def test_compare_lookahead_from_config(tmp_path):
    ref, cmp = tmp_path / "ref.pcap", tmp_path / "cmp.pcap"
    save(ref, labelled("ABC"))
    save(cmp, labelled("XYABC"))
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("lookahead: 2\nshow_details: false\n", encoding="utf-8")
    rep = MemoryReporter()
    assert main(["--config", str(cfg), "compare", str(ref), str(cmp)], reporter=rep) == 0
    assert "- extra records: 2" not in rep.lines
    assert not any(line.startswith("  [") for line in rep.lines)
    # flag overrides the file
    rep = MemoryReporter()
    main(["--config", str(cfg), "compare", str(ref), str(cmp), "--lookahead", "3"], reporter=rep)
    assert "- extra records: 2" in rep.lines


def test_bad_config_exits_nonzero(tmp_path, in_pcap):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("colour: blue\n", encoding="utf-8")
    assert main(["--config", str(cfg), "disorder-detect", str(in_pcap)], reporter=MemoryReporter()) == 1


def test_log_dir_gets_log_file(tmp_path, in_pcap):
    logs = tmp_path / "logs"
    assert main(["--log-dir", str(logs), "disorder-detect", str(in_pcap)], reporter=MemoryReporter()) == 0
    assert (logs / "pcapedit.log").exists()


def test_report_json_into_missing_dir_fails_cleanly(tmp_path, in_pcap, capsys):
    target = tmp_path / "no" / "x.json"
    assert main(["disorder-detect", str(in_pcap), "--report-json", str(target)], reporter=MemoryReporter()) == 1
    assert str(target) in capsys.readouterr().err
    assert not (tmp_path / "no").exists()


def test_metadata_write_failure_removes_output(tmp_path, in_pcap):
    out = tmp_path / "out.pcap"
    (tmp_path / "out.pcap.metadata.json").mkdir()
    assert main(["dilute", str(in_pcap), str(out), "-f", "2", "--metadata"], reporter=MemoryReporter()) == 1
    assert not out.exists()
    assert not (tmp_path / "out.pcap.metadata.json.tmp").exists()
