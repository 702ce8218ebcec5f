"""
Encoder for ndb text (Layer 2: Python values → ndb lines).

Output rules:
    - One line per record or dict; a list or tuple gives one line per element
    - Tuples are separated by a single space
    - List-valued fields repeat the attribute once per element
    - None values produce no tuple
    - ' is escaped as ''
    - Values containing white space, or starting with '', are quoted
"""

import dataclasses
import io
import logging
from collections.abc import Mapping
from typing import IO, Any, Dict, Iterator, List

from ndb.convert import Slot, format_scalar, record_slots
from ndb.errors import NdbTypeError, invalid_attribute, invalid_value
from ndb.lexer import is_attr_char


logger = logging.getLogger(__name__)


def check_attr(attr: bytes) -> None:
    """Raise NdbSyntaxError unless attr is non-empty UTF-8 letters, numbers or '-'."""
    if not attr:
        raise invalid_attribute(attr)
    try:
        text = attr.decode("utf-8")
    except UnicodeDecodeError as e:
        raise invalid_attribute(attr, e.start)
    offset = 0
    for ch in text:
        if not is_attr_char(ch):
            raise invalid_attribute(attr, offset)
        offset += len(ch.encode("utf-8"))


def check_value(value: bytes) -> str:
    """Raise NdbSyntaxError unless value is UTF-8 without line terminators."""
    try:
        text = value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise invalid_value(value, e.start)
    for terminator in (b"\n", b"\r"):
        pos = value.find(terminator)
        if pos != -1:
            raise invalid_value(value, pos)
    return text


def format_tuple(attr: bytes, value: bytes) -> bytes:
    text = check_value(value)
    quoted = value.startswith(b"''") or any(ch.isspace() for ch in text)
    value = value.replace(b"'", b"''")
    if quoted:
        value = b"'" + value + b"'"
    return attr + b"=" + value


class Encoder:
    """
    Writes Python values as ndb lines to a binary stream.

    Each encode() call is buffered in full and written with a single
    write() only once the whole value was encoded, so a failure leaves
    the stream untouched.
    """

    def __init__(self, out: IO[bytes]):
        self._out = out
        self._slots: Dict[type, List[Slot]] = {}

    def encode(self, value: Any) -> None:
        """
        Raises:
            NdbTypeError: If value (or one of its fields) cannot be encoded
            NdbSyntaxError: If an attribute or value is not valid ndb text
        """
        buf = io.BytesIO()
        if isinstance(value, (list, tuple)):
            for item in value:
                self._encode_line(buf, item)
        else:
            self._encode_line(buf, value)
        data = buf.getvalue()
        logger.debug("encoded %d bytes", len(data))
        self._out.write(data)

    def _encode_line(self, buf: io.BytesIO, value: Any) -> None:
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            tuples = self._record_tuples(value)
        elif isinstance(value, Mapping):
            tuples = self._mapping_tuples(value)
        else:
            raise NdbTypeError(type(value) if value is not None else None,
                               "source must be a dataclass instance, dict or list")
        buf.write(b" ".join(tuples))
        buf.write(b"\n")

    def _record_tuples(self, rec: Any) -> Iterator[bytes]:
        cls = type(rec)
        if cls not in self._slots:
            self._slots[cls] = record_slots(cls)
        for slot in self._slots[cls]:
            yield from self._tuples(slot.attr, getattr(rec, slot.name))

    def _mapping_tuples(self, m: Mapping) -> Iterator[bytes]:
        for key, value in m.items():
            yield from self._tuples(key, value)

    def _tuples(self, key: Any, value: Any) -> Iterator[bytes]:
        attr = format_scalar(key)
        check_attr(attr)
        if value is None:
            return
        values = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            yield format_tuple(attr, format_scalar(v))


def marshal(value: Any) -> bytes:
    """
    Encode a value as ndb text.

    A list or tuple of records/dicts gives one line per element. The
    final line terminator is dropped.
    """
    buf = io.BytesIO()
    Encoder(buf).encode(value)
    data = buf.getvalue()
    if data.endswith(b"\n"):
        data = data[:-1]
    return data


__all__ = [
    "Encoder",
    "marshal",
]
