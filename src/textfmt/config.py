"""Options for a textfmt run, from the command line and an optional JSON file.

The config file is a JSON object; every key is optional:

    {
        "enc": "utf8",
        "eol": "lf",
        "exclude": "\\\\.git$|node_modules$",
        "chunk_size": 65536
    }

Command-line values win over the file, and the file wins over defaults.
"""

import json
import os
import re
import sys
from dataclasses import dataclass
from typing import Optional

from textfmt.fmtinfo import Encoding, FormatInfo, LineEnding
from textfmt.transform import DEFAULT_CHUNK_SIZE

CONFIG_FILENAME = ".textfmt.json"

EXCLUDE_DEFAULT = r"\.git$|\.svn$|\.hg$|\.o$|\.obj$|\.exe$"


@dataclass(frozen=True)
class Options:
    target: FormatInfo = FormatInfo()
    exclude: Optional[re.Pattern] = re.compile(EXCLUDE_DEFAULT)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    check: bool = False
    quiet: bool = False
    verbose: bool = False


def load_config(path):
    """Load a JSON config file.

    Returns {} when the file does not exist. A file that cannot be read or
    parsed is reported as a warning and also gives {}.
    """
    if not os.path.isfile(path):
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        print(f"Warning: Could not load {path}: {exc}", file=sys.stderr)
        return {}

    if not isinstance(data, dict):
        print(f"Warning: Could not load {path}: expected a JSON object", file=sys.stderr)
        return {}
    return data


def _pick(args, config, name, default):
    value = getattr(args, name, None)
    if value is not None:
        return value
    return config.get(name, default)


def build_options(args, config=None):
    """Combine parsed command-line *args* with *config* into an Options.

    Raises ValueError for unknown encodings or line endings, a bad exclude
    pattern, or a chunk size that is not a positive integer.
    """
    config = config or {}

    target = FormatInfo(
        encoding=Encoding.parse(_pick(args, config, "enc", "")),
        line_ending=LineEnding.parse(_pick(args, config, "eol", "")),
    )

    exclude = _pick(args, config, "exclude", EXCLUDE_DEFAULT)
    try:
        pattern = re.compile(exclude) if exclude else None
    except re.error as exc:
        raise ValueError(f"bad exclude pattern {exclude!r}: {exc}") from None

    chunk_size = _pick(args, config, "chunk_size", DEFAULT_CHUNK_SIZE)
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 2:
        raise ValueError(f"chunk size must be an integer of at least 2: {chunk_size!r}")

    return Options(
        target=target,
        exclude=pattern,
        chunk_size=chunk_size,
        check=bool(getattr(args, "check", False)),
        quiet=bool(getattr(args, "quiet", False)),
        verbose=bool(getattr(args, "verbose", False)),
    )
