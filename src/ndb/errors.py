"""
Error types shared by the lexer, the decoder and the encoder.

Two kinds of failure exist:
    - NdbSyntaxError: malformed input text, or a value that cannot be
      written as valid ndb text
    - NdbTypeError: a Python value or type that cannot hold (or produce)
      the decoded text

Both derive from NdbError so callers can catch either with one clause.
"""

from typing import Any, Optional, get_args


SNIPPET_LENGTH = 10


def type_name(tp: Any) -> str:
    if tp is None:
        return "nil"
    if isinstance(tp, type) and not get_args(tp):
        return tp.__name__
    return repr(tp).replace("typing.", "")


class NdbError(Exception):
    """Base class for all ndb codec errors."""
    pass


class NdbSyntaxError(NdbError, ValueError):
    """
    Raised when malformed input is received, such as an unterminated
    quoted string, or when a value cannot be encoded.

    Properties:
        data: The UTF-8 line being read (or the offending text on encode).
              Only meaningful for display; do not hold on to it.
        offset: Byte offset of the first offending byte in data.
        message: Human-readable description.
        kind: Short machine-readable error kind.
    """

    def __init__(self, message: str, data: Optional[bytes] = None, offset: int = 0, kind: str = ""):
        self.message = message
        self.data = data
        self.offset = offset
        self.kind = kind
        super().__init__(self.__str__())

    def snippet(self) -> bytes:
        """Up to SNIPPET_LENGTH bytes of data starting at offset, on UTF-8 boundaries."""
        if not self.data:
            return b""
        start = min(self.offset, len(self.data) - 1)
        end = min(start + SNIPPET_LENGTH, len(self.data))
        while start > 0 and (self.data[start] & 0xC0) == 0x80:
            start -= 1
        while end < len(self.data) and (self.data[end] & 0xC0) == 0x80:
            end += 1
        return self.data[start:end]

    def __str__(self) -> str:
        if self.data is None:
            return self.message
        text = self.snippet().decode("utf-8", errors="replace")
        return f"{self.message}\n\tat `{text}'"


class NdbTypeError(NdbError, TypeError):
    """
    Raised when a Python value is incompatible with the ndb string
    it must store or create.
    """

    def __init__(self, type_: Any = None, detail: str = ""):
        self.type = type_
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self) -> str:
        msg = f"Invalid type {type_name(self.type)} or nil value"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg


def bad_attribute(line: bytes, offset: int) -> NdbSyntaxError:
    return NdbSyntaxError("Invalid attribute name", line, offset, "bad-attribute")


def unterminated(line: bytes, offset: int) -> NdbSyntaxError:
    return NdbSyntaxError("Unterminated quoted string", line, offset, "unterminated")


def bad_unicode(line: bytes, offset: int) -> NdbSyntaxError:
    return NdbSyntaxError("Invalid UTF8 input", line, offset, "bad-unicode")


def missing_space(line: bytes, offset: int) -> NdbSyntaxError:
    return NdbSyntaxError("Missing white space between tuples", line, offset, "missing-space")


def invalid_attribute(attr: bytes, offset: int = 0) -> NdbSyntaxError:
    shown = attr.decode("utf-8", errors="replace")
    return NdbSyntaxError(f"Invalid attribute {shown}", attr, offset, "invalid-attribute")


def invalid_value(value: bytes, offset: int = 0) -> NdbSyntaxError:
    shown = value.decode("utf-8", errors="replace")
    return NdbSyntaxError(f"Invalid value {shown!r}", value, offset, "invalid-value")
