"""
Decoder for ndb text (Layer 2: Pairs → Python values).

Destination shapes:
    - dataclass instance: fields are matched by attribute name or attr() alias
    - dict: keys and values converted per the Dict[K, V] hint
    - dict with list values: used when an attribute repeats in a line
    - list: one element per input line, per the List[...] hint

Attributes that match nothing are dropped. Fields and keys that are
not addressed keep their current value. If a line cannot be converted,
the destination is left exactly as it was.
"""

import dataclasses
import io
import logging
import warnings
from typing import IO, Any, Dict, List, Optional, Tuple, Union

from ndb.convert import (
    Slot,
    element_type,
    is_mapping_type,
    is_record_type,
    is_sequence_type,
    make_sequence,
    mapping_types,
    new_record,
    parse_scalar,
    record_slots,
)
from ndb.errors import NdbTypeError
from ndb.lexer import tokenize
from ndb.model import Multiplicity, Pair
from ndb.reader import LineReader


logger = logging.getLogger(__name__)


def _is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _check_writable(cls: type) -> None:
    if cls.__dataclass_params__.frozen:
        raise NdbTypeError(cls, "frozen dataclass cannot be decoded into")


class Decoder:
    """
    Reads successive ndb lines from a stream into Python values.

    The per-type field index is cached on the instance. A Decoder is not
    safe for concurrent use.
    """

    def __init__(self, stream: IO):
        self._src = LineReader(stream)
        self._slots: Dict[type, Dict[bytes, Slot]] = {}

    def decode(self, dest: Any, hint: Any = None) -> Any:
        """
        Decode into dest and return it.

        A list destination consumes every remaining line; any other
        destination consumes one line.

        Args:
            dest: dataclass instance, dict or list to populate in place
            hint: Dict[K, V] for dicts, List[...] for lists (required)

        Raises:
            EOFError: If no line is left for a single-value decode
            NdbSyntaxError: If a line is malformed
            NdbTypeError: If the text cannot be stored in dest
        """
        if isinstance(dest, list):
            self._decode_list(dest, hint)
            return dest
        if not (isinstance(dest, dict) or _is_record(dest)):
            raise NdbTypeError(type(dest) if dest is not None else None,
                               "destination must be a dataclass instance, dict or list")
        if _is_record(dest):
            _check_writable(type(dest))
        pairs, multi = self._next_pairs()
        self._store(dest, hint, pairs, multi)
        return dest

    def _next_pairs(self) -> Tuple[List[Pair], Multiplicity]:
        line = self._src.read_line()
        multi = Multiplicity()
        pairs = tokenize(line, multi)
        logger.debug("decoded %d tuples from %r", len(pairs), line)
        return pairs, multi

    def _store(self, dest: Any, hint: Any, pairs: List[Pair], multi: Multiplicity) -> None:
        if isinstance(dest, dict):
            self._save_map(dest, hint, pairs, multi)
        else:
            self._save_record(dest, pairs, multi)

    def _decode_list(self, dest: list, hint: Any) -> None:
        if hint is None or not is_sequence_type(hint):
            raise NdbTypeError(hint if hint is not None else list, "list destination needs a List[...] hint")
        elem = element_type(hint)
        if not (is_record_type(elem) or is_mapping_type(elem)):
            raise NdbTypeError(elem, "list elements must be dataclass records or dicts")
        if is_record_type(elem):
            _check_writable(elem)

        items = []
        while True:
            try:
                pairs, multi = self._next_pairs()
            except EOFError:
                break
            if not pairs:
                continue
            item = new_record(elem) if is_record_type(elem) else {}
            self._store(item, elem, pairs, multi)
            items.append(item)
        dest.extend(items)

    def _slot_index(self, cls: type) -> Dict[bytes, Slot]:
        index = self._slots.get(cls)
        if index is None:
            index = {}
            for slot in record_slots(cls):
                key = slot.attr.encode("utf-8")
                if key in index:
                    warnings.warn(
                        f"{cls.__name__}: fields {index[key].name!r} and {slot.name!r} "
                        f"share attribute {slot.attr!r}; {slot.name!r} is used",
                        UserWarning,
                    )
                index[key] = slot
            self._slots[cls] = index
        return index

    def _save_record(self, rec: Any, pairs: List[Pair], multi: Multiplicity) -> None:
        index = self._slot_index(type(rec))
        staged: Dict[str, Any] = {}
        plural: Dict[str, Slot] = {}

        for p in pairs:
            slot = index.get(p.attr)
            if slot is None:
                continue
            if is_sequence_type(slot.type):
                value = parse_scalar(element_type(slot.type), p.value)
                plural[slot.name] = slot
                if multi.is_repeated(p.attr):
                    staged.setdefault(slot.name, []).append(value)
                else:
                    staged[slot.name] = [value]
            elif multi.is_repeated(p.attr):
                raise NdbTypeError(slot.type, f"attribute {slot.attr!r} repeats but field {slot.name!r} is not a list")
            else:
                staged[slot.name] = parse_scalar(slot.type, p.value)

        for name, value in staged.items():
            if name in plural:
                value = make_sequence(plural[name].type, value)
            setattr(rec, name, value)

    def _save_map(self, m: dict, hint: Any, pairs: List[Pair], multi: Multiplicity) -> None:
        key_type, value_type = mapping_types(hint)
        plural = is_sequence_type(value_type)
        if multi.any_repeated() and not plural:
            raise NdbTypeError(hint if hint is not None else type(m),
                               "attributes repeat but the value type is not a list")

        staged: Dict[Any, Any] = {}
        for p in pairs:
            key = parse_scalar(key_type, p.attr)
            if plural:
                staged.setdefault(key, []).append(parse_scalar(element_type(value_type), p.value))
            else:
                staged[key] = parse_scalar(value_type, p.value)
        if plural:
            staged = {key: make_sequence(value_type, values) for key, values in staged.items()}
        m.update(staged)


def unmarshal(data: Union[bytes, str], dest: Any, hint: Optional[Any] = None) -> Any:
    """
    Decode ndb text into dest.

    If dest is a list, every line becomes an element; otherwise only the
    first line is decoded. See Decoder.decode for the rules.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return Decoder(io.BytesIO(data)).decode(dest, hint)


__all__ = [
    "Decoder",
    "unmarshal",
]
