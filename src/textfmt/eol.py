"""Line-ending styles and the streaming line-ending rewriter."""

import enum
import re

from textfmt.transform import Status, Transformer

CR = b"\r"
LF = b"\n"
CRLF = b"\r\n"

_TERMINATOR = re.compile(rb"[\r\n]")

_ALIASES = {
    "LF": "LF", "UNIX": "LF", "OSX": "LF", "U": "LF",
    "CRLF": "CRLF", "CR+LF": "CRLF", "WIN": "CRLF", "DOS": "CRLF", "W": "CRLF", "D": "CRLF",
    "CR": "CR", "MAC": "CR", "M": "CR",
    "": "MIXED",
}


class LineEnding(enum.Enum):
    """How lines end. ``MIXED`` means inconsistent or undecided."""

    MIXED = "mixed"
    LF = "LF"
    CRLF = "CR+LF"
    CR = "CR"

    def __str__(self):
        return self.value

    @property
    def terminator(self):
        return _TERMINATORS.get(self)

    @classmethod
    def parse(cls, name):
        """Parse a command-line style name (``lf``, ``dos``, ``mac``...).

        An empty name means "keep whatever the file has" and gives MIXED.
        """
        try:
            return cls[_ALIASES[str(name or "").strip().upper()]]
        except KeyError:
            raise ValueError(f"unknown line ending: {name}") from None


_TERMINATORS = {
    LineEnding.LF: LF,
    LineEnding.CRLF: CRLF,
    LineEnding.CR: CR,
}


class LineEndingRewriter(Transformer):
    """Rewrite every ``\\n``, ``\\r\\n`` and ``\\r`` to one terminator.

    A ``\\r`` at the end of a chunk is remembered in ``pending_cr`` until the
    next byte shows whether it is half of a ``\\r\\n``.
    """

    def __init__(self, line_ending: LineEnding):
        if line_ending.terminator is None:
            raise ValueError(f"cannot rewrite line endings to {line_ending}")
        self.line_ending = line_ending
        self.replacement = line_ending.terminator
        self.pending_cr = False

    def __repr__(self):
        return f"LineEndingRewriter({self.line_ending.name})"

    def reset(self):
        self.pending_cr = False

    def transform(self, src, at_eof, dst_size):
        rep = self.replacement
        out = bytearray()
        pos = 0
        end = len(src)

        while pos < end:
            if self.pending_cr:
                if dst_size - len(out) < len(rep):
                    return bytes(out), pos, Status.NEED_OUTPUT
                out += rep
                self.pending_cr = False
                if src[pos] == 0x0A:
                    pos += 1
                continue

            m = _TERMINATOR.search(src, pos)
            stop = m.start() if m else end
            room = dst_size - len(out)
            if stop - pos > room:
                out += src[pos:pos + room]
                return bytes(out), pos + room, Status.NEED_OUTPUT
            out += src[pos:stop]
            pos = stop
            if pos == end:
                break

            if src[pos] == 0x0D:
                self.pending_cr = True
            else:
                if dst_size - len(out) < len(rep):
                    return bytes(out), pos, Status.NEED_OUTPUT
                out += rep
            pos += 1

        if not at_eof:
            return bytes(out), pos, Status.NEED_INPUT
        if self.pending_cr:
            if dst_size - len(out) < len(rep):
                return bytes(out), pos, Status.NEED_OUTPUT
            out += rep
            self.pending_cr = False
        return bytes(out), pos, Status.DONE
