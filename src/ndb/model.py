"""
Core ndb Model Objects

Defines the small data structures passed between the lexer and the
decoder, and the declarations used to describe record fields.

These are:
    - Pair (one decoded attribute=value tuple)
    - Multiplicity (which attributes repeated within one line)
    - attr() (alias declaration for dataclass record fields)
    - Sized scalar markers (Int8 ... Uint64, Float32, Float64)

ARCHITECTURAL RULE:
    These objects know nothing about quoting, escaping or text layout.
    That belongs in the lexer and the encoder.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Set


METADATA_KEY = "ndb"


@dataclass(frozen=True)
class Pair:
    """
    One decoded tuple of an ndb line.

    Properties:
        attr: Attribute name bytes (never contains whitespace, ' or =)
        value: Value bytes with quoting removed and escapes resolved
    """

    attr: bytes
    value: bytes = b""

    def __str__(self) -> str:
        return f"{self.attr.decode('utf-8', 'replace')} => {self.value.decode('utf-8', 'replace')}"


@dataclass
class Multiplicity:
    """
    Tracks, for one decoded line, which attribute names were seen once
    and which were seen more than once.

    Attribute names are compared as exact bytes (case-sensitive).
    A fresh instance is used for every decode call.
    """

    seen: Set[bytes] = field(default_factory=set)
    repeated: Set[bytes] = field(default_factory=set)

    def record(self, attr: bytes) -> None:
        if attr in self.seen:
            self.repeated.add(attr)
        else:
            self.seen.add(attr)

    def is_repeated(self, attr: bytes) -> bool:
        return attr in self.repeated

    def any_repeated(self) -> bool:
        return bool(self.repeated)


def attr(name: str, **kwargs: Any) -> Any:
    """
    Declare a dataclass field whose ndb attribute name differs from
    the field name.

    Example:
        @dataclass
        class NetCfg:
            host: str = attr("host-name", default="")
            vlan: List[int] = attr("vlan", default_factory=list)

    Any other keyword arguments are passed to dataclasses.field().
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = name
    return field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class IntWidth:
    """Range constraint for an integer slot of a fixed bit width."""

    bits: int
    signed: bool = True

    @property
    def minimum(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def maximum(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def contains(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True)
class FloatWidth:
    """Precision marker for a floating point slot (32 or 64 bits)."""

    bits: int = 64


Int8 = Annotated[int, IntWidth(8)]
Int16 = Annotated[int, IntWidth(16)]
Int32 = Annotated[int, IntWidth(32)]
Int64 = Annotated[int, IntWidth(64)]
Uint8 = Annotated[int, IntWidth(8, signed=False)]
Uint16 = Annotated[int, IntWidth(16, signed=False)]
Uint32 = Annotated[int, IntWidth(32, signed=False)]
Uint64 = Annotated[int, IntWidth(64, signed=False)]
Float32 = Annotated[float, FloatWidth(32)]
Float64 = Annotated[float, FloatWidth(64)]
