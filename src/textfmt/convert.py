"""In-place file conversion with an atomic swap.

The converted content is written to a sibling staging file first
(``<path>.new``, or ``<path>.N.new`` when that is taken). Only when it is
complete does the swap begin:

    <path>      -> <path>.old     (backup)
    <path>.new  -> <path>
    remove <path>.old

If anything fails before the swap, the staging file is removed and the
original is untouched. If the second rename fails, the backup is renamed
back. Between the two renames <path> does not exist; a crash at that
point leaves the original content at the ``.old`` path.
"""

import os
import shutil
import sys

from textfmt.transform import DEFAULT_CHUNK_SIZE, pump

# Maximum number of candidate names tried by tmp_path().
TMP_MAX_TRIAL = 10


class ConvertError(Exception):
    """Base class for conversion failures that are not plain I/O errors."""


class TempPathError(ConvertError):
    """No free temporary sibling path could be found."""


class SwapError(ConvertError):
    """Renaming the converted file into place failed."""


def tmp_path(path, suffix):
    """Return the first unused sibling path for *path* with *suffix*.

    Tries ``path.suffix`` then ``path.1.suffix`` ... ``path.9.suffix``.
    """
    path = os.fspath(path)
    candidates = [f"{path}.{suffix}"]
    candidates += [f"{path}.{i}.{suffix}" for i in range(1, TMP_MAX_TRIAL)]
    for candidate in candidates:
        if not os.path.lexists(candidate):
            return candidate
    raise TempPathError(f"can't generate temporary path for {path}")


def _remove_quietly(path):
    try:
        os.remove(path)
    except OSError:
        pass


def convert_all(src_path, dst_path, transformer, chunk_size=DEFAULT_CHUNK_SIZE):
    """Stream *src_path* through *transformer* into a new file *dst_path*.

    *dst_path* is created exclusively; FileExistsError is raised if it is
    already there, and the existing file is left alone. On any other
    failure the partial *dst_path* is removed before the error propagates.
    """
    dst = open(dst_path, "xb")
    try:
        with dst, open(src_path, "rb") as src:
            pump(src, dst, transformer, chunk_size)
        shutil.copymode(src_path, dst_path)
    except BaseException:
        _remove_quietly(dst_path)
        raise


def swap_files(path, new_path):
    """Replace *path* with *new_path*, keeping a backup until it succeeds."""
    path = os.fspath(path)
    new_path = os.fspath(new_path)
    try:
        old_path = tmp_path(path, "old")
    except TempPathError:
        _remove_quietly(new_path)
        raise

    try:
        os.rename(path, old_path)
    except OSError as exc:
        _remove_quietly(new_path)
        raise SwapError(f"could not move {path} aside to {old_path}: {exc}") from exc

    try:
        os.rename(new_path, path)
    except OSError as exc:
        try:
            os.rename(old_path, path)
        except OSError as restore_exc:
            raise SwapError(
                f"could not move {new_path} into place ({exc}) nor restore the original "
                f"({restore_exc}); original content is in {old_path}, converted content in {new_path}"
            ) from exc
        _remove_quietly(new_path)
        raise SwapError(f"could not move {new_path} into place: {exc}") from exc

    if not os.path.lexists(path):
        raise SwapError(f"{path} is missing after rename; original content is in {old_path}")

    try:
        os.remove(old_path)
    except OSError as exc:
        print(f"Warning: Could not remove backup {old_path}: {exc}", file=sys.stderr)


def convert(path, transformer, chunk_size=DEFAULT_CHUNK_SIZE):
    """Convert the file at *path* in place through *transformer*.

    A symbolic link is followed: the file it points to is converted, next
    to itself, and the link is left as it is. Returns the staging path that
    was used.
    """
    path = os.path.realpath(path)
    new_path = tmp_path(path, "new")
    convert_all(path, new_path, transformer, chunk_size)
    swap_files(path, new_path)
    return new_path
