"""Detect the format of a text file in a single streaming pass.

Several detectors look at the same byte stream at once. Each one stays
active until it has made up its mind, and reading stops as soon as none
of them needs more data.
"""

import re

from textfmt.fmtinfo import Encoding, FormatInfo, LineEnding
from textfmt.transform import DEFAULT_CHUNK_SIZE

_TERMINATOR = re.compile(rb"[\r\n]")


class Detector:
    """A scanner fed with successive chunks of one stream.

    Goes from active to inactive at most once; once inactive it ignores
    anything it is given. ``result`` holds the answer and is read after the
    scan; subclasses set it as they learn more. None means no answer.
    """

    result = None

    def is_active(self) -> bool:
        raise NotImplementedError

    def ingest(self, chunk: bytes, at_eof: bool):
        raise NotImplementedError


class MultiDetector(Detector):
    """Drive several detectors over the same stream in lock-step."""

    def __init__(self, *detectors: Detector):
        self.detectors = list(detectors)

    def is_active(self):
        return any(d.is_active() for d in self.detectors)

    def ingest(self, chunk, at_eof):
        for detector in self.detectors:
            if detector.is_active():
                detector.ingest(chunk, at_eof)


class LineEndingDetector(Detector):
    """Classify the line-ending style of a stream.

    The first terminator seen sets the hypothesis. A terminator of another
    kind turns the result into MIXED for good and stops the detector, since
    nothing later can change that answer. Uniform files are only confirmed
    at end of stream.
    """

    def __init__(self):
        self.hypothesis = None
        self.pending_cr = False
        self.active = True

    def is_active(self):
        return self.active

    @property
    def result(self) -> LineEnding:
        if self.hypothesis is None:
            return LineEnding.MIXED
        return self.hypothesis

    def _emit(self, line_ending):
        if self.hypothesis is None:
            self.hypothesis = line_ending
        elif self.hypothesis is not line_ending:
            self.hypothesis = LineEnding.MIXED
            self.active = False

    def ingest(self, chunk, at_eof):
        if not self.active:
            return
        pos = 0
        for m in _TERMINATOR.finditer(chunk):
            start = m.start()
            if self.pending_cr:
                # A lone CR unless this LF follows it directly.
                if start == pos and chunk[start] == 0x0A:
                    self.pending_cr = False
                    self._emit(LineEnding.CRLF)
                    pos = start + 1
                    if not self.active:
                        return
                    continue
                self.pending_cr = False
                self._emit(LineEnding.CR)
                if not self.active:
                    return
            if chunk[start] == 0x0D:
                self.pending_cr = True
            else:
                self._emit(LineEnding.LF)
                if not self.active:
                    return
            pos = start + 1

        if self.pending_cr and (pos < len(chunk) or at_eof):
            self.pending_cr = False
            self._emit(LineEnding.CR)


class EncodingDetector(Detector):
    """Placeholder for charset detection.

    Always answers BINARY, which keeps conversions from transcoding. A real
    implementation (byte-validity scoring for UTF-8, Shift_JIS and EUC-JP,
    escape sequences for ISO-2022-JP) can replace it without touching
    MultiDetector or the conversion code.
    """

    result = Encoding.BINARY

    def is_active(self):
        return True

    def ingest(self, chunk, at_eof):
        pass


def detect_stream(stream, chunk_size=DEFAULT_CHUNK_SIZE, encoding_detector=None):
    """Detect the format of an open binary stream."""
    eol = LineEndingDetector()
    enc = encoding_detector if encoding_detector is not None else EncodingDetector()
    detector = MultiDetector(eol, enc)

    while detector.is_active():
        chunk = stream.read(chunk_size)
        if not chunk:
            detector.ingest(b"", True)
            break
        detector.ingest(chunk, False)

    encoding = enc.result if enc.result is not None else Encoding.BINARY
    return FormatInfo(encoding=encoding, line_ending=eol.result)


def detect(path, chunk_size=DEFAULT_CHUNK_SIZE, encoding_detector=None):
    """Detect the format of the file at *path* without modifying it."""
    with open(path, "rb") as f:
        return detect_stream(f, chunk_size, encoding_detector)
