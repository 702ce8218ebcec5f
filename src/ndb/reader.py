"""
Logical line source for the decoder.

Physical lines that begin with a space or tab continue the previous
line, in the style of MIME header continuation. They are joined with a
single space after trimming surrounding blanks.
"""

from typing import IO, Optional, Union


_BLANKS = b" \t"


class LineReader:
    """
    Reads logical lines from a binary or text stream.

    read_line() returns one logical line without its terminator and
    raises EOFError once the stream is exhausted.
    """

    def __init__(self, stream: IO):
        self._stream = stream
        self._pending: Optional[bytes] = None

    def _next_physical(self) -> Optional[bytes]:
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        raw: Union[bytes, str] = self._stream.readline()
        if not raw:
            return None
        if isinstance(raw, str):
            raw = raw.encode("utf-8", errors="surrogateescape")
        if raw.endswith(b"\n"):
            raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return raw

    def read_line(self) -> bytes:
        first = self._next_physical()
        if first is None:
            raise EOFError("end of ndb input")
        parts = [first.strip(_BLANKS)]
        if not parts[0]:
            return b""
        while True:
            nxt = self._next_physical()
            if nxt is None:
                break
            if nxt[:1] not in (b" ", b"\t"):
                self._pending = nxt
                break
            cont = nxt.strip(_BLANKS)
            if cont:
                parts.append(cont)
        return b" ".join(parts)
