import pytest

from conftest import labelled, make_stream, rec
from pcapedit.compare import (
    SequenceAligner, Transition, compare_streams, fingerprint_func,
    framed_fingerprint, payload_fingerprint,
)
from pcapedit.core import CaptureStream
from pcapedit.errors import InvalidParameter


def _pairs(entries):
    return [(e.index, e.record.buf.decode()) for e in entries]


def _aligner(a: str, b: str, lookahead=100):
    fa = [ord(c) for c in a]
    fb = [ord(c) for c in b]
    sa, sb = labelled(a), labelled(b)
    return SequenceAligner(sa.records, sb.records, fa, fb, lookahead=lookahead)


def test_self_compare_is_identical(stream10):
    result = compare_streams(stream10, stream10)
    assert result.identical
    assert result.transitions[Transition.MATCH] == 10


def test_removed_record_is_missing():
    result = compare_streams(labelled("ABCDE"), labelled("ABDE"))
    assert _pairs(result.missing) == [(2, "C")]
    assert result.extra == []


def test_inserted_record_is_extra():
    result = compare_streams(labelled("ABC"), labelled("AXBC"))
    assert _pairs(result.extra) == [(1, "X")]
    assert result.missing == []


def test_entries_unpack_as_index_record_pairs():
    result = compare_streams(labelled("ABCDE"), labelled("ABDE"))
    [(idx, record)] = result.missing
    assert idx == 2 and record.buf == b"C"


def test_timestamps_do_not_affect_match():
    a = labelled("ABCD", step_us=1)
    b = labelled("ABCD", step_us=5000)
    assert compare_streams(a, b).identical
    assert compare_streams(a, b, ignore_timestamp=True).identical


def test_ignore_timestamp_mode_adds_length_fields():
    a = CaptureStream(records=[rec(b"same", 0, origlen=4)])
    b = CaptureStream(records=[rec(b"same", 0, origlen=1500)])
    assert compare_streams(a, b, ignore_timestamp=False).identical
    result = compare_streams(a, b, ignore_timestamp=True)
    assert len(result.missing) == 1 and len(result.extra) == 1


def test_fingerprint_selection():
    assert fingerprint_func(True) is framed_fingerprint
    assert fingerprint_func(False) is payload_fingerprint
    r = rec(b"payload", 0)
    assert payload_fingerprint(r) != framed_fingerprint(r)
    assert 0 <= payload_fingerprint(r) < 2 ** 64


def test_resync_in_b_is_tried_before_resync_in_a():
    # at i=0/j=0: A[0]='A' is B[1], and B[0]='B' is A[1]; extras win
    al = _aligner("ABC", "BAC")
    assert al.step() is Transition.RESYNC_B
    result = al.run()
    assert _pairs(result.extra) == [(0, "B")]
    assert _pairs(result.missing) == [(1, "B")]


def test_resync_in_a_when_b_has_no_match():
    al = _aligner("XYAB", "AB")
    assert al.step() is Transition.RESYNC_A
    assert (al.i, al.j) == (3, 1)
    result = al.run()
    assert _pairs(result.missing) == [(0, "X"), (1, "Y")]
    assert result.extra == []


def test_substitution_when_nothing_resyncs():
    result = compare_streams(labelled("ABC"), labelled("AZC"))
    assert _pairs(result.missing) == [(1, "B")]
    assert _pairs(result.extra) == [(1, "Z")]
    assert result.transitions[Transition.SUBSTITUTE] == 1


def test_tails_are_missing_and_extra():
    assert _pairs(compare_streams(labelled("ABCD"), labelled("AB")).missing) == [(2, "C"), (3, "D")]
    assert _pairs(compare_streams(labelled("AB"), labelled("ABCD")).extra) == [(2, "C"), (3, "D")]


def test_empty_inputs():
    assert _pairs(compare_streams(CaptureStream(), labelled("AB")).extra) == [(0, "A"), (1, "B")]
    assert _pairs(compare_streams(labelled("AB"), CaptureStream()).missing) == [(0, "A"), (1, "B")]
    assert compare_streams(CaptureStream(), CaptureStream()).identical


def test_lookahead_window_bounds_resync():
    ref = make_stream(range(5), [b"a", b"b", b"c", b"d", b"e"])
    cmp = make_stream(range(8), [b"x", b"y", b"z", b"a", b"b", b"c", b"d", b"e"])
    wide = compare_streams(ref, cmp, lookahead=4)
    assert [e.index for e in wide.extra] == [0, 1, 2]
    assert wide.missing == []
    # 'a' sits at offset 3, outside a 3-record window
    narrow = compare_streams(ref, cmp, lookahead=3)
    assert len(narrow.missing) > 0


def test_default_lookahead_is_100():
    novel = [f"n{i}".encode() for i in range(100)]
    base = [f"r{i}".encode() for i in range(5)]
    ref = make_stream(range(5), base)
    cmp = make_stream(range(105), novel + base)
    # 'r0' is at offset 100: one past the window, so nothing resyncs in B
    result = compare_streams(ref, cmp)
    assert result.transitions[Transition.RESYNC_B] == 0


def test_deleting_any_single_record_reports_exactly_it(stream10):
    for p in range(len(stream10)):
        copy = stream10.derive(r for i, r in enumerate(stream10.records) if i != p)
        result = compare_streams(stream10, copy)
        assert [e.index for e in result.missing] == [p]
        assert result.extra == []


def test_inserting_a_novel_record_reports_exactly_it(stream10):
    for q in range(len(stream10) + 1):
        recs = list(stream10.records)
        recs.insert(q, rec(b"novel", 0))
        result = compare_streams(stream10, stream10.derive(recs))
        assert [e.index for e in result.extra] == [q]
        assert result.missing == []


@pytest.mark.parametrize("bad", [0, -1, 2.5, True])
def test_bad_lookahead(stream10, bad):
    with pytest.raises(InvalidParameter):
        compare_streams(stream10, stream10, lookahead=bad)


def test_as_dict_summary():
    d = compare_streams(labelled("ABCDE"), labelled("ABDE")).as_dict()
    assert d["missing_count"] == 1 and d["extra_count"] == 0
    assert len(d["missing"][0]["fingerprint"]) == 16
    assert d["transitions"]["resync_a"] == 1
