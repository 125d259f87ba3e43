"""Streaming byte transforms.

A transformer consumes input chunks and produces bounded-size output
chunks. Each call to ``transform()`` returns the produced bytes, how much
of the input was consumed, and a :class:`Status` telling the caller what
to do next:

* ``NEED_OUTPUT`` - the output region filled up. Flush the output and call
  again with the unconsumed input.
* ``NEED_INPUT``  - all usable input was taken. Prepend the unconsumed tail
  (if any) to the next chunk.
* ``DONE``        - end of stream was reached and all carried state was
  flushed.

Transformers are created per conversion and never shared between files.
"""

import codecs
import enum
from typing import Callable, Tuple

DEFAULT_CHUNK_SIZE = 64 * 1024

# Canonical form between a decoder and an encoder.
CANONICAL_CODEC = "utf-8"


class Status(enum.Enum):
    DONE = "done"
    NEED_INPUT = "need-input"
    NEED_OUTPUT = "need-output"


class TransformError(Exception):
    """A transformer violated the streaming contract or hit truncated input."""


class Transformer:
    """Base class for streaming byte transforms."""

    def transform(self, src: bytes, at_eof: bool, dst_size: int) -> Tuple[bytes, int, Status]:
        raise NotImplementedError

    def reset(self):
        """Forget any state carried from previous calls."""


def feed(transformer: Transformer, data: bytes, at_eof: bool,
         write: Callable[[bytes], object], dst_size: int = DEFAULT_CHUNK_SIZE):
    """Run *data* through *transformer*, handing each output piece to *write*.

    Keeps calling while the transformer asks for more output space.
    Returns ``(unconsumed, status)``.
    """
    while True:
        out, consumed, status = transformer.transform(data, at_eof, dst_size)
        if out:
            write(out)
        data = data[consumed:]
        if status is not Status.NEED_OUTPUT:
            return data, status
        if not out and not consumed:
            raise TransformError(
                f"{type(transformer).__name__} made no progress with a {dst_size}-byte output buffer"
            )


def pump(src_file, dst_file, transformer: Transformer, chunk_size: int = DEFAULT_CHUNK_SIZE):
    """Stream *src_file* through *transformer* into *dst_file*.

    End of stream is delivered to the transformer exactly once, even when
    the last read returns nothing.
    """
    pending = b""
    while True:
        chunk = src_file.read(chunk_size)
        at_eof = not chunk
        pending, status = feed(transformer, pending + chunk, at_eof, dst_file.write, chunk_size)
        if at_eof:
            if status is not Status.DONE or pending:
                raise TransformError(f"input ended in the middle of a sequence ({len(pending)} bytes left)")
            return


class _HeldOutputTransformer(Transformer):
    """Transformer that converts whole input chunks at once.

    Output that does not fit in the destination region is held back and
    delivered before any further input is taken.
    """

    def __init__(self):
        self._held = b""
        self._finished = False

    def _convert(self, data: bytes, final: bool) -> bytes:
        raise NotImplementedError

    def transform(self, src, at_eof, dst_size):
        if self._held:
            out, self._held = self._held[:dst_size], self._held[dst_size:]
            if self._held:
                return out, 0, Status.NEED_OUTPUT
            if not src:
                if at_eof and self._finished:
                    return out, 0, Status.DONE
                if not at_eof:
                    return out, 0, Status.NEED_INPUT
            return out, 0, Status.NEED_OUTPUT

        converted = self._convert(src, at_eof)
        self._finished = at_eof
        out, self._held = converted[:dst_size], converted[dst_size:]
        if self._held:
            return out, len(src), Status.NEED_OUTPUT
        return out, len(src), Status.DONE if at_eof else Status.NEED_INPUT

    def reset(self):
        self._held = b""
        self._finished = False


class Chain(_HeldOutputTransformer):
    """Run several transformers one after another as a single transformer."""

    def __init__(self, *steps: Transformer):
        super().__init__()
        self.steps = list(steps)
        self._carry = [b""] * len(self.steps)

    def __repr__(self):
        names = ", ".join(type(s).__name__ for s in self.steps)
        return f"Chain({names})"

    def __len__(self):
        return len(self.steps)

    def _convert(self, data, final):
        for i, step in enumerate(self.steps):
            parts = []
            rest, _ = feed(step, self._carry[i] + data, final, parts.append)
            if final and rest:
                raise TransformError(
                    f"{type(step).__name__} left {len(rest)} unconsumed bytes at end of stream"
                )
            self._carry[i] = rest
            data = b"".join(parts)
        return data

    def reset(self):
        super().reset()
        for step in self.steps:
            step.reset()
        self._carry = [b""] * len(self.steps)


class _CodecTransformer(_HeldOutputTransformer):
    def __init__(self, codec_name: str):
        super().__init__()
        self.codec_name = codecs.lookup(codec_name).name
        self._make_state()

    def __repr__(self):
        return f"{type(self).__name__}({self.codec_name!r})"

    def _make_state(self):
        raise NotImplementedError

    def reset(self):
        super().reset()
        self._make_state()


class Decoder(_CodecTransformer):
    """Native bytes of *codec_name* -> canonical UTF-8 bytes."""

    def _make_state(self):
        self._decoder = codecs.getincrementaldecoder(self.codec_name)(errors="strict")

    def _convert(self, data, final):
        return self._decoder.decode(data, final).encode(CANONICAL_CODEC)


class Encoder(_CodecTransformer):
    """Canonical UTF-8 bytes -> native bytes of *codec_name*."""

    def _make_state(self):
        self._decoder = codecs.getincrementaldecoder(CANONICAL_CODEC)(errors="strict")
        self._encoder = codecs.getincrementalencoder(self.codec_name)(errors="strict")

    def _convert(self, data, final):
        return self._encoder.encode(self._decoder.decode(data, final), final)
