"""
Lexer for ndb lines (Layer 1: raw bytes → ordered Pairs).

Line format:
    attr1=value1 attr2='quoted value' attr3=val3

Syntax Notes:
    - Tuples are separated by any amount of white space
    - Attributes are letters, numbers and '-'
    - Values containing white space are wrapped in single quotes
    - '' is a literal quote, both inside and outside quotes
    - A value starting with '' is an escaped quote, not an empty
      quoted string; an empty value is written as attr=
"""

import unicodedata
from enum import Enum
from typing import Callable, Dict, List, Optional

from ndb.errors import bad_attribute, bad_unicode, missing_space, unterminated
from ndb.model import Multiplicity, Pair


QUOTE = "'"
LINE_TERMINATORS = "\r\n"


class ScanState(Enum):
    """States of the line scanner."""

    NONE = "none"                # between tuples
    ATTR = "attr"                # inside an attribute name
    VALUE_START = "value-start"  # just consumed '='
    VALUE = "value"              # inside an unquoted value
    QUOTE_OPEN = "quote-open"    # just consumed the opening quote
    QUOTE_PAIR = "quote-pair"    # consumed '' right after '='
    QUOTED = "quoted"            # inside a quoted value
    QUOTE_CLOSE = "quote-close"  # consumed a quote inside a quoted value


def is_attr_char(ch: str) -> bool:
    """Letters, numbers (any Unicode class) and '-'."""
    return ch == "-" or unicodedata.category(ch)[0] in "LN"


def unescape(value: bytes) -> bytes:
    return value.replace(b"''", b"'")


def _utf8_len(ch: str) -> int:
    cp = ord(ch)
    if cp < 0x80:
        return 1
    if cp < 0x800:
        return 2
    if cp < 0x10000:
        return 3
    return 4


def _is_bad_byte(ch: str) -> bool:
    # surrogateescape maps every undecodable byte to U+DC80..U+DCFF
    return "\udc80" <= ch <= "\udcff"


class _Lexer:
    """Single-use scanner over one line."""

    def __init__(self, line: bytes, multiplicity: Multiplicity):
        self.line = line
        self.multiplicity = multiplicity
        self.state = ScanState.NONE
        self.pairs: List[Pair] = []
        self.attr = b""
        self.beg = 0
        self.offset = 0
        self._transitions: Dict[ScanState, Callable[[str], None]] = {
            ScanState.NONE: self._scan_none,
            ScanState.ATTR: self._scan_attr,
            ScanState.VALUE_START: self._scan_value_start,
            ScanState.VALUE: self._scan_value,
            ScanState.QUOTE_OPEN: self._scan_quote_open,
            ScanState.QUOTE_PAIR: self._scan_quote_pair,
            ScanState.QUOTED: self._scan_quoted,
            ScanState.QUOTE_CLOSE: self._scan_quote_close,
        }

    def run(self) -> List[Pair]:
        for ch in self.line.decode("utf-8", errors="surrogateescape"):
            if _is_bad_byte(ch):
                raise bad_unicode(self.line, self.offset)
            self._transitions[self.state](ch)
            self.offset += _utf8_len(ch)
        self._finish()
        return self.pairs

    def _end_attr(self) -> None:
        self.attr = self.line[self.beg:self.offset]
        self.multiplicity.record(self.attr)

    def _emit(self, value: bytes) -> None:
        self.pairs.append(Pair(self.attr, value))
        self.attr = b""
        self.state = ScanState.NONE

    def _scan_none(self, ch: str) -> None:
        if ch.isspace():
            return
        if not is_attr_char(ch):
            raise bad_attribute(self.line, self.offset)
        self.beg = self.offset
        self.state = ScanState.ATTR

    def _scan_attr(self, ch: str) -> None:
        if ch.isspace():
            self._end_attr()
            self._emit(b"")
        elif ch == "=":
            self._end_attr()
            self.state = ScanState.VALUE_START
        elif not is_attr_char(ch):
            raise bad_attribute(self.line, self.offset)

    def _scan_value_start(self, ch: str) -> None:
        self.beg = self.offset
        if ch.isspace():
            self._emit(b"")
        elif ch == QUOTE:
            self.state = ScanState.QUOTE_OPEN
        else:
            self.state = ScanState.VALUE

    def _scan_value(self, ch: str) -> None:
        if ch.isspace():
            self._emit(unescape(self.line[self.beg:self.offset]))

    def _scan_quote_open(self, ch: str) -> None:
        if ch == QUOTE:
            self.state = ScanState.QUOTE_PAIR
        elif ch in LINE_TERMINATORS:
            raise unterminated(self.line, self.offset)
        else:
            self.beg = self.offset
            self.state = ScanState.QUOTED

    def _scan_quote_pair(self, ch: str) -> None:
        # beg still points at the first of the two quotes
        if ch == QUOTE:
            # '''...: quoted value whose first character is an escaped quote
            self.beg += 1
            self.state = ScanState.QUOTED
        elif ch.isspace():
            self._emit(QUOTE.encode())
        else:
            self.state = ScanState.VALUE

    def _scan_quoted(self, ch: str) -> None:
        if ch == QUOTE:
            self.state = ScanState.QUOTE_CLOSE
        elif ch in LINE_TERMINATORS:
            raise unterminated(self.line, self.offset)

    def _scan_quote_close(self, ch: str) -> None:
        if ch == QUOTE:
            self.state = ScanState.QUOTED
        elif ch.isspace():
            self._emit(unescape(self.line[self.beg:self.offset - 1]))
        else:
            raise missing_space(self.line, self.offset)

    def _finish(self) -> None:
        end = len(self.line)
        state = self.state
        if state in (ScanState.QUOTE_OPEN, ScanState.QUOTED):
            raise unterminated(self.line, end)
        if state == ScanState.ATTR:
            self._end_attr()
            self._emit(b"")
        elif state == ScanState.VALUE_START:
            self._emit(b"")
        elif state == ScanState.VALUE:
            self._emit(unescape(self.line[self.beg:end]))
        elif state == ScanState.QUOTE_PAIR:
            self._emit(QUOTE.encode())
        elif state == ScanState.QUOTE_CLOSE:
            self._emit(unescape(self.line[self.beg:end - 1]))


def tokenize(line: bytes, multiplicity: Optional[Multiplicity] = None) -> List[Pair]:
    """
    Split one logical line into its (attribute, value) pairs.

    Args:
        line: Raw bytes of one logical line
        multiplicity: Optional Multiplicity to record attribute counts in

    Returns:
        Pairs in the order they appear in the line

    Raises:
        NdbSyntaxError: If the line is malformed. No pairs are returned.
    """
    if multiplicity is None:
        multiplicity = Multiplicity()
    return _Lexer(line, multiplicity).run()


__all__ = [
    "ScanState",
    "tokenize",
    "is_attr_char",
]
