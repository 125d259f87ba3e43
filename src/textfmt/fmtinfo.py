"""Text format information: encoding plus line-ending style."""

import enum
from dataclasses import dataclass
from typing import Optional

from textfmt.eol import LineEnding, LineEndingRewriter
from textfmt.transform import Chain, Decoder, Encoder

__all__ = ["Encoding", "FormatInfo", "LineEnding"]


_ALIASES = {
    "UTF8": "UTF8", "UTF-8": "UTF8", "U": "UTF8",
    "EUCJP": "EUCJP", "EUC-JP": "EUCJP", "EUC_JP": "EUCJP", "E": "EUCJP",
    # "EUC" alone might not mean Japanese some day.
    "EUC": "EUCJP",
    "JIS": "JIS", "ISO2022JP": "JIS", "ISO-2022-JP": "JIS", "J": "JIS",
    "CP932": "SHIFTJIS", "SJIS": "SHIFTJIS", "SHIFT_JIS": "SHIFTJIS", "WIN31J": "SHIFTJIS",
    "S": "SHIFTJIS",
    "": "BINARY",
}


class Encoding(enum.Enum):
    """Character encoding of a file. ``BINARY`` means "do not transcode"."""

    BINARY = "binary"
    UTF8 = "UTF-8"
    EUCJP = "EUC-JP"
    JIS = "ISO-2022-JP"
    SHIFTJIS = "Shift_JIS"

    def __str__(self):
        return self.value

    @property
    def codec(self):
        """Python codec name, or None for BINARY."""
        return _CODECS.get(self)

    @classmethod
    def parse(cls, name):
        """Parse a command-line style name (``utf8``, ``euc``, ``sjis``...).

        An empty name means "keep whatever the file has" and gives BINARY.
        """
        try:
            return cls[_ALIASES[str(name or "").strip().upper()]]
        except KeyError:
            raise ValueError(f"unknown encoding: {name}") from None

    def new_decoder(self):
        return Decoder(self.codec) if self.codec else None

    def new_encoder(self):
        return Encoder(self.codec) if self.codec else None


_CODECS = {
    Encoding.UTF8: "utf-8",
    Encoding.EUCJP: "euc_jp",
    Encoding.JIS: "iso2022_jp",
    Encoding.SHIFTJIS: "cp932",
}


@dataclass(frozen=True)
class FormatInfo:
    """Encoding and line-ending style of a text file, or of a conversion target."""

    encoding: Encoding = Encoding.BINARY
    line_ending: LineEnding = LineEnding.MIXED

    def __str__(self):
        return self.describe()

    def describe(self) -> str:
        if self.encoding is Encoding.BINARY:
            return "binary file"
        return f"{self.encoding}, {self.line_ending}"

    def needs_transcode(self, to: "FormatInfo") -> bool:
        if to.encoding is Encoding.BINARY or self.encoding is Encoding.BINARY:
            return False
        return self.encoding is not to.encoding

    def needs_rewrite(self, to: "FormatInfo") -> bool:
        if to.line_ending is LineEnding.MIXED or self.line_ending is LineEnding.MIXED:
            return False
        return self.line_ending is not to.line_ending

    def transformer(self, to: Optional["FormatInfo"]) -> Optional[Chain]:
        """Build the chain that converts this format into *to*.

        Returns None when nothing needs to change. The steps always run in
        the order decode, rewrite line endings, encode.
        """
        if to is None:
            return None
        steps = []
        transcode = self.needs_transcode(to)
        if transcode:
            steps.append(self.encoding.new_decoder())
        if self.needs_rewrite(to):
            steps.append(LineEndingRewriter(to.line_ending))
        if transcode:
            steps.append(to.encoding.new_encoder())
        if not steps:
            return None
        return Chain(*steps)
