"""textfmt - detect and convert text file encodings and line endings."""

from textfmt._version import __version__

__app_name__ = "textfmt"
