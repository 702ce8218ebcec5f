"""
Scalar conversion between ndb text and Python values.

Shared by the decoder (text → value) and the encoder (value → text).
Also holds the type introspection helpers both directions rely on:
unwrapping Optional/Annotated hints, recognising list and dict hints,
and listing the bindable fields of a dataclass record.
"""

import collections.abc
import dataclasses
import math
import re
import struct
import types
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Tuple, Union, get_args, get_origin, get_type_hints

from ndb.errors import NdbTypeError
from ndb.model import METADATA_KEY, FloatWidth, IntWidth


_INT_RE = re.compile(rb"[+-]?[0-9]+")

_TRUE = {b"1", b"t", b"true"}
_FALSE = {b"0", b"f", b"false"}

_SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
_CONTAINERS = (collections.abc.Mapping, list, tuple, set, frozenset)


@dataclass(frozen=True)
class Slot:
    """
    One bindable field of a dataclass record.

    Properties:
        name: Python field name
        attr: ndb attribute name (alias from attr() or the field name)
        type: Resolved type hint, extras included
    """

    name: str
    attr: str
    type: Any


def unwrap_optional(tp: Any) -> Any:
    """Optional[X] → X. Any other hint is returned unchanged."""
    if get_origin(tp) in (Union, types.UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def is_optional(tp: Any) -> bool:
    return get_origin(tp) in (Union, types.UnionType) and type(None) in get_args(tp)


def strip_annotated(tp: Any) -> Tuple[Any, tuple]:
    if get_origin(tp) is Annotated:
        return get_args(tp)[0], tuple(tp.__metadata__)
    return tp, ()


def is_sequence_type(tp: Any) -> bool:
    base, _ = strip_annotated(unwrap_optional(tp))
    if base in (str, bytes, bytearray):
        return False
    return base in (list, tuple) or get_origin(base) in _SEQUENCE_ORIGINS


def is_mapping_type(tp: Any) -> bool:
    base, _ = strip_annotated(unwrap_optional(tp))
    return base is dict or get_origin(base) in _MAPPING_ORIGINS


def is_record_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def element_type(tp: Any) -> Any:
    """Element type of a list or tuple hint; a bare list holds str."""
    base, _ = strip_annotated(unwrap_optional(tp))
    args = [a for a in get_args(base) if a is not Ellipsis]
    return args[0] if args else str


def make_sequence(tp: Any, items: List[Any]) -> Any:
    """Container matching a sequence hint: a tuple for Tuple hints, a list otherwise."""
    base, _ = strip_annotated(unwrap_optional(tp))
    if base is tuple or get_origin(base) is tuple:
        return tuple(items)
    return list(items)


def mapping_types(tp: Any) -> Tuple[Any, Any]:
    """(key type, value type) of a dict hint; None or a bare dict is Dict[str, str]."""
    if tp is None:
        return str, str
    base, _ = strip_annotated(unwrap_optional(tp))
    args = get_args(base)
    if len(args) == 2:
        return args[0], args[1]
    return str, str


def record_slots(cls: type) -> List[Slot]:
    """
    Bindable fields of a dataclass, in declaration order.

    Fields whose name starts with an underscore are private and skipped.
    """
    if not is_record_type(cls):
        raise NdbTypeError(cls, "not a dataclass record")
    hints = get_type_hints(cls, include_extras=True)
    slots = []
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            continue
        slots.append(Slot(name=f.name, attr=f.metadata.get(METADATA_KEY) or f.name, type=hints.get(f.name, str)))
    return slots


def zero_value(tp: Any) -> Any:
    """The empty value of a type, used for record fields without a default."""
    if is_optional(tp):
        return None
    if is_sequence_type(tp):
        return make_sequence(tp, [])
    if is_mapping_type(tp):
        return {}
    base, _ = strip_annotated(tp)
    if base in (bool, int, float, str, bytes):
        return base()
    if is_record_type(base):
        return new_record(base)
    return None


def new_record(cls: type) -> Any:
    """Build a dataclass instance, filling fields that have no default with zero values."""
    hints = get_type_hints(cls, include_extras=True)
    kwargs: Dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = zero_value(hints.get(f.name, str))
    return cls(**kwargs)


def _parse_bool(raw: bytes) -> bool:
    text = raw.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def _parse_int(raw: bytes, meta: tuple) -> int:
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"invalid integer {raw!r}")
    value = int(raw.decode("ascii"))
    for m in meta:
        if isinstance(m, IntWidth) and not m.contains(value):
            raise OverflowError(f"{value} out of range [{m.minimum}, {m.maximum}]")
    return value


def _parse_float(raw: bytes, meta: tuple) -> float:
    if not raw or raw != raw.strip() or b"_" in raw:
        raise ValueError(f"invalid float {raw!r}")
    value = float(raw.decode("ascii"))
    if math.isinf(value) and b"inf" not in raw.lower():
        raise OverflowError(f"{raw!r} out of range")
    for m in meta:
        if isinstance(m, FloatWidth) and m.bits == 32:
            # struct refuses finite values that do not fit in a float32
            value = struct.unpack("f", struct.pack("f", value))[0]
    return value


def parse_scalar(tp: Any, raw: bytes) -> Any:
    """
    Convert value bytes to an instance of a scalar type.

    Supported: bool, int (and the sized Int/Uint markers), float
    (Float32/Float64), str, bytes, and Optional of any of these.

    Raises:
        NdbTypeError: If the text does not parse, is out of range, or
            the type is not a supported scalar
    """
    base, meta = strip_annotated(unwrap_optional(tp))
    try:
        if base is bool:
            return _parse_bool(raw)
        if base is int:
            return _parse_int(raw, meta)
        if base is float:
            return _parse_float(raw, meta)
        if base is str:
            return raw.decode("utf-8")
        if base in (bytes, bytearray):
            return base(raw)
    except (ValueError, OverflowError) as e:
        raise NdbTypeError(tp, str(e))
    raise NdbTypeError(tp, "unsupported destination")


def format_scalar(value: Any) -> bytes:
    """
    Convert a scalar value to its ndb text, before quoting and escaping.

    Enum members are written by value. Objects that are not containers
    or records (Decimal, IPv4Address, ...) are written through str().

    Raises:
        NdbTypeError: For nested or unsupported values
    """
    if isinstance(value, Enum):
        return format_scalar(value.value)
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if isinstance(value, int):
        return str(int(value)).encode()
    if isinstance(value, float):
        return repr(value).encode()
    if isinstance(value, str):
        return value.encode("utf-8", errors="surrogatepass")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if value is None or isinstance(value, _CONTAINERS) or dataclasses.is_dataclass(value):
        raise NdbTypeError(type(value) if value is not None else None, "cannot encode nested or unsupported value")
    return str(value).encode("utf-8", errors="surrogatepass")
