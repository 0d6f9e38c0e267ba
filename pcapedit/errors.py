# pcapedit/errors.py
from __future__ import annotations

from typing import Optional


class PcapEditError(Exception):
    """Base class for every failure raised by pcapedit."""


class InvalidParameter(PcapEditError, ValueError):
    """Factor or option outside the operation's valid range."""


class TimestampOutOfRange(InvalidParameter):
    """A computed timestamp does not fit the u32 seconds field."""


class EmptyStream(PcapEditError):
    """The operation needs at least one record."""


class InsufficientPackets(PcapEditError):
    """Dilution factor exceeds the record count."""


class _PathError(PcapEditError):
    def __init__(self, path, reason: Optional[str] = None):
        self.path = str(path)
        self.reason = reason
        msg = f"{self.path}: {reason}" if reason else self.path
        super().__init__(msg)


class UnreadableFile(_PathError):
    pass


class MalformedHeader(_PathError):
    pass


class WriteFailure(_PathError):
    pass
