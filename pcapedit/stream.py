# pcapedit/stream.py
from __future__ import annotations

import os
from typing import Iterator, Tuple

import dpkt

from .core import CaptureRecord, CaptureStream, PcapHeader
from .errors import MalformedHeader, TimestampOutOfRange, UnreadableFile
from .utils import get_logger

log = get_logger("stream")

_MAGIC_LE = b"\xd4\xc3\xb2\xa1"
_MAGIC_BE = b"\xa1\xb2\xc3\xd4"
_MAGIC_NANO = {b"\x4d\x3c\xb2\xa1", b"\xa1\xb2\x3c\x4d"}
_PCAPNG_MAGIC = b"\x0a\x0d\x0d\x0a"

FILE_HDR_LEN = dpkt.pcap.FileHdr.__hdr_len__
PKT_HDR_LEN = dpkt.pcap.PktHdr.__hdr_len__


def _sniff_kind(head: bytes) -> str:
    if head == _MAGIC_LE:
        return "pcap-le"
    if head == _MAGIC_BE:
        return "pcap-be"
    if head in _MAGIC_NANO:
        return "pcap-nano"
    if head == _PCAPNG_MAGIC:
        return "pcapng"
    return "unknown"


def parse_file_header(gh: bytes, path: str = "<memory>") -> PcapHeader:
    if len(gh) < FILE_HDR_LEN:
        raise MalformedHeader(path, f"file header too short ({len(gh)} bytes)")
    kind = _sniff_kind(gh[:4])
    if kind == "pcap-le":
        fh = dpkt.pcap.LEFileHdr(gh[:FILE_HDR_LEN])
        byte_order = "<"
    elif kind == "pcap-be":
        fh = dpkt.pcap.FileHdr(gh[:FILE_HDR_LEN])
        byte_order = ">"
    elif kind == "pcap-nano":
        raise MalformedHeader(path, "nanosecond-resolution pcap is not supported")
    elif kind == "pcapng":
        raise MalformedHeader(path, "pcapng is not supported (classic pcap only)")
    else:
        raise MalformedHeader(path, f"invalid pcap magic {gh[:4].hex()}")
    return PcapHeader(
        byte_order=byte_order,
        v_major=fh.v_major,
        v_minor=fh.v_minor,
        thiszone=fh.thiszone,
        sigfigs=fh.sigfigs,
        snaplen=fh.snaplen,
        linktype=fh.linktype,
    )


def iter_records(f, header: PcapHeader, path: str, file_size: int) -> Iterator[Tuple[CaptureRecord, int]]:
    """
    Yield (record, offset_after_record) for every complete record of an open pcap
    positioned just past the file header. Stops at the first short read.
    """
    hdr_cls = dpkt.pcap.LEPktHdr if header.byte_order == "<" else dpkt.pcap.PktHdr
    idx = 0
    while True:
        pos_before_hdr = f.tell()
        raw = f.read(PKT_HDR_LEN)
        if len(raw) < PKT_HDR_LEN:
            if raw:
                log.warning(f"Short record header at {pos_before_hdr} in {path} ({len(raw)} bytes)")
            return
        ph = hdr_cls(raw)
        remaining = file_size - f.tell()
        pkt = f.read(min(ph.caplen, max(remaining, 0)))
        if len(pkt) < ph.caplen:
            log.warning(
                f"Truncated record #{idx} at {pos_before_hdr} in {path}: "
                f"caplen={ph.caplen} available={len(pkt)}"
            )
            return
        try:
            rec = CaptureRecord(ts_sec=ph.tv_sec, ts_usec=ph.tv_usec,
                                caplen=ph.caplen, origlen=ph.len, buf=pkt)
        except TimestampOutOfRange as e:
            raise MalformedHeader(path, f"record #{idx} at {pos_before_hdr}: {e}") from e
        idx += 1
        yield rec, f.tell()


def load(path) -> CaptureStream:
    """Read a whole classic pcap into memory."""
    path = os.fspath(path)
    try:
        f = open(path, "rb")
    except OSError as e:
        raise UnreadableFile(path, e.strerror or str(e)) from e

    with f:
        try:
            file_size = os.fstat(f.fileno()).st_size
            header = parse_file_header(f.read(FILE_HDR_LEN), path)
            records = []
            consumed = FILE_HDR_LEN
            for rec, consumed in iter_records(f, header, path, file_size):
                records.append(rec)
        except OSError as e:
            raise UnreadableFile(path, e.strerror or str(e)) from e

    stream = CaptureStream(records=records, header=header, source=path,
                           bytes_consumed=consumed, file_size=file_size)
    if stream.truncated:
        log.warning(f"Incomplete read of {path}: {consumed}/{file_size} bytes ({len(records)} records)")
    log.debug(f"Loaded {len(records)} records from {path} (linktype {header.linktype})")
    return stream
