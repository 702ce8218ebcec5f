"""
ndb: attribute=value line codec

Reads and writes lines of the form:

    host-name=p2-jbs537 vlan=66 vlan=35 desc='core switch' note=can''t

based on Plan 9's ndb(6) format, with extra rules for quoting values
that contain white space:

    - Values containing white space are enclosed in single quotes
    - A single quote is escaped by doubling it: can't → can''t
    - Tuples are separated by at least one white space character
    - The same attribute may appear several times in a line; the
      destination must then accept a list of values

FORMAT GUARANTEE:
-----------------
This package contains ZERO knowledge of:
    - Nested or structured values
    - Multi-line values
    - Schemas beyond Python type compatibility
"""

from ndb.decode import Decoder, unmarshal
from ndb.encode import Encoder, marshal
from ndb.errors import NdbError, NdbSyntaxError, NdbTypeError
from ndb.lexer import tokenize
from ndb.model import (
    Float32,
    Float64,
    Int8,
    Int16,
    Int32,
    Int64,
    Multiplicity,
    Pair,
    Uint8,
    Uint16,
    Uint32,
    Uint64,
    attr,
)

__version__ = "0.1.0"

__all__ = [
    "Decoder",
    "Encoder",
    "unmarshal",
    "marshal",
    "tokenize",
    "attr",
    "Pair",
    "Multiplicity",
    "NdbError",
    "NdbSyntaxError",
    "NdbTypeError",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    "Float32",
    "Float64",
]
