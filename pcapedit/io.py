# pcapedit/io.py
from __future__ import annotations

import os
from pathlib import Path

import dpkt

from .core import CaptureStream, PcapHeader
from .errors import WriteFailure
from .utils import get_logger

log = get_logger("io")


def pack_file_header(header: PcapHeader) -> bytes:
    cls = dpkt.pcap.LEFileHdr if header.byte_order == "<" else dpkt.pcap.FileHdr
    fh = cls(
        magic=dpkt.pcap.TCPDUMP_MAGIC,
        v_major=header.v_major,
        v_minor=header.v_minor,
        thiszone=header.thiszone,
        sigfigs=header.sigfigs,
        snaplen=header.snaplen,
        linktype=header.linktype,
    )
    return bytes(fh)


class PcapSinkBuffered:
    """Buffered classic pcap writer (header byte order taken from the stream)."""
    def __init__(self, fobj, header: PcapHeader, buf_size: int = 100):
        self._f = fobj
        self._hdr_cls = dpkt.pcap.LEPktHdr if header.byte_order == "<" else dpkt.pcap.PktHdr
        self._buf = []
        self._limit = buf_size  # Buffer N records before flush
        self.written = 0
        self._f.write(pack_file_header(header))

    def writerec(self, rec):
        ph = self._hdr_cls(tv_sec=rec.ts_sec, tv_usec=rec.ts_usec, caplen=len(rec.buf), len=rec.origlen)
        self._buf.append(bytes(ph) + rec.buf)
        if len(self._buf) >= self._limit:
            self.flush()

    def flush(self):
        if self._buf:
            self._f.write(b"".join(self._buf))
            self.written += len(self._buf)
            self._buf.clear()

    def close(self):
        self.flush()
        self._f.flush()


def save(path, stream: CaptureStream, buf_size: int = 100) -> int:
    """
    Write the stream to path through a sibling .tmp file, then atomically
    replace path. Returns the number of records written.
    """
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "wb") as f:
            sink = PcapSinkBuffered(f, stream.header, buf_size=buf_size)
            for rec in stream.records:
                sink.writerec(rec)
            sink.close()
            os.fsync(f.fileno())
        tmp.replace(path)
    except OSError as e:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise WriteFailure(path, e.strerror or str(e)) from e
    log.debug(f"Wrote {sink.written} records to {path}")
    return sink.written
