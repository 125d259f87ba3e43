"""Main CLI entry point for textfmt."""

import argparse
import os
import sys

from textfmt._version import DISPLAY_VERSION, __version__
from textfmt.config import CONFIG_FILENAME, EXCLUDE_DEFAULT, build_options, load_config
from textfmt.convert import ConvertError, convert
from textfmt.detect import detect
from textfmt.transform import TransformError


# Exceptions a single file can fail with; anything else is a bug.
FILE_ERRORS = (OSError, ConvertError, TransformError, UnicodeError)

help_text = """Examples:

  textfmt notes.txt                   show the format of a file
  textfmt --eol lf src/               convert every file under src/ to LF
  textfmt --enc utf8 --eol crlf a.txt convert to UTF-8 with CR+LF
  textfmt --check --eol lf .          list files that are not LF (exit 1 if any)

Encodings: UTF8 (U), EUC-JP (EUC, E), JIS/ISO-2022-JP (J), CP932/SJIS (S)
Line endings: LF (UNIX, U), CRLF (WIN, DOS, W, D), CR (MAC, M)
"""


def build_parser():
    """Build the argparse parser."""
    parser = argparse.ArgumentParser(
        prog="textfmt",
        description="textfmt - detect and convert text file encodings and line endings",
        epilog=help_text,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"textfmt {DISPLAY_VERSION} ({__version__})",
    )
    parser.add_argument("paths", nargs="+", metavar="PATH", help="files or directories to process")
    parser.add_argument("--enc", "-e", default=None, help="target encoding (default: keep)")
    parser.add_argument("--eol", "-l", default=None, help="target line ending (default: keep)")
    parser.add_argument(
        "--exclude", "-x", default=None,
        help=f"regex of files/dirs to skip while walking directories (default: {EXCLUDE_DEFAULT})",
    )
    parser.add_argument(
        "--config", "-c", default=None,
        help=f"JSON config file (default: {CONFIG_FILENAME} if present)",
    )
    parser.add_argument("--chunk-size", dest="chunk_size", type=int, default=None, help="read size in bytes")
    parser.add_argument("--check", action="store_true", help="only report files that would be converted")
    parser.add_argument("-q", "--quiet", action="store_true", help="suppress informative messages")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    return parser


def iter_files(path, exclude=None):
    """Yield regular files under directory *path*, skipping excluded names.

    Excluded directories are not descended into.
    """
    for dirpath, dirnames, filenames in os.walk(path):
        dirnames.sort()
        if exclude is not None:
            dirnames[:] = [d for d in dirnames if not exclude.search(os.path.join(dirpath, d))]
        for name in sorted(filenames):
            full = os.path.join(dirpath, name)
            if exclude is not None and exclude.search(full):
                continue
            if os.path.isfile(full):
                yield full


def process_file(path, options):
    """Detect and, if needed, convert one file.

    Returns True if the file already matches the target (or was converted),
    False if --check found it needs converting.
    """
    source = detect(path, options.chunk_size)
    transformer = source.transformer(options.target)

    if transformer is None:
        if not options.quiet:
            print(f"{path} ({source.describe()})")
        return True

    if options.check:
        if not options.quiet:
            print(f"{path}: {source.describe()} (needs conversion)")
        return False

    if options.verbose:
        print(f"{path}: steps {transformer!r}")
    new_path = convert(path, transformer, options.chunk_size)
    if options.verbose:
        print(f"{path}: staged in {new_path}")
    if not options.quiet:
        print(f"{path}: converted ({_describe_changes(source, options.target)})")
    return True


def _describe_changes(source, target):
    changes = []
    if source.needs_transcode(target):
        changes.append(f"{source.encoding} -> {target.encoding}")
    if source.needs_rewrite(target):
        changes.append(f"{source.line_ending} -> {target.line_ending}")
    return ", ".join(changes)


def process_path(path, options):
    """Process a file or walk a directory.

    Returns (failures, pending) counts. Errors are reported per file and
    never stop the walk.
    """
    failures = 0
    pending = 0

    if os.path.isdir(path):
        files = iter_files(path, options.exclude)
    else:
        files = [path]

    for file_path in files:
        try:
            if not process_file(file_path, options):
                pending += 1
        except FILE_ERRORS as exc:
            print(f"{file_path}: {_describe_error(exc, file_path)}", file=sys.stderr)
            failures += 1

    return failures, pending


def _describe_error(exc, path):
    # OSError's str() repeats the filename; name it only when it is not *path*.
    if isinstance(exc, OSError) and exc.strerror:
        filename = exc.filename
        if isinstance(filename, (str, bytes)) and not _same_path(os.fsdecode(filename), path):
            return f"{exc.strerror}: {os.fsdecode(filename)}"
        return exc.strerror
    return str(exc)


def _same_path(a, b):
    return os.path.realpath(a) == os.path.realpath(b)


def main(argv=None):
    """Main entry point for the textfmt CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = args.config or CONFIG_FILENAME
    if args.config and not os.path.isfile(args.config):
        parser.error(f"config file not found: {args.config}")
    config = load_config(config_path)

    try:
        options = build_options(args, config)
    except ValueError as exc:
        parser.error(str(exc))

    if options.verbose:
        print(f"Target: {options.target.encoding}, {options.target.line_ending}")

    failures = 0
    pending = 0
    try:
        for path in args.paths:
            if not os.path.exists(path):
                print(f"{path}: No such file or directory", file=sys.stderr)
                failures += 1
                continue
            path_failures, path_pending = process_path(path, options)
            failures += path_failures
            pending += path_pending
    except KeyboardInterrupt:
        return 130

    if failures or pending:
        return 1
    return 0
