# pcapedit/__init__.py
from .core import CaptureRecord, CaptureStream, PcapHeader
from .errors import (
    EmptyStream, InsufficientPackets, InvalidParameter, MalformedHeader,
    PcapEditError, TimestampOutOfRange, UnreadableFile, WriteFailure,
)
from .transforms import augment, dilute, time_compress, time_stretch
from .disorder import detect_disorder
from .compare import compare_streams
from .stream import load
from .io import save

__version__ = "1.0.0"
