"""
JSON/YAML interop for ndb text.

Each ndb line becomes one plain dict: attribute → str, or attribute →
list of str when the attribute repeats within the line. A document is
a list of such dicts, in line order.
"""
from __future__ import annotations

import io
import json
from typing import Any, Dict, Iterable, List, Union

import yaml

from ndb.decode import Decoder
from ndb.encode import Encoder
from ndb.errors import NdbTypeError


def lines_to_dicts(data: Union[bytes, str]) -> List[Dict[str, Any]]:
    if isinstance(data, str):
        data = data.encode("utf-8")
    lines: List[Dict[str, List[str]]] = []
    Decoder(io.BytesIO(data)).decode(lines, List[Dict[str, List[str]]])
    return [
        {attr: values[0] if len(values) == 1 else values for attr, values in line.items()}
        for line in lines
    ]


def dicts_to_lines(records: Iterable[Dict[str, Any]]) -> bytes:
    buf = io.BytesIO()
    Encoder(buf).encode(list(records))
    return buf.getvalue()


def _as_records(doc: Any) -> List[Dict[str, Any]]:
    if doc is None:
        return []
    if isinstance(doc, dict):
        return [doc]
    if isinstance(doc, list):
        return doc
    raise NdbTypeError(type(doc), "document must be a mapping or a list of mappings")


def ndb_to_json(data: Union[bytes, str]) -> str:
    return json.dumps(lines_to_dicts(data), sort_keys=True)


def ndb_from_json(s: str) -> bytes:
    return dicts_to_lines(_as_records(json.loads(s)))


def ndb_to_yaml(data: Union[bytes, str]) -> str:
    return yaml.safe_dump(lines_to_dicts(data))


def ndb_from_yaml(s: str) -> bytes:
    return dicts_to_lines(_as_records(yaml.safe_load(s)))
