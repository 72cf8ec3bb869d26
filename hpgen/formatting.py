"""hpgen/formatting.py – naming and literal policy for emitted Python.

Grammar names arrive in whatever casing the grammar author used
(``int-literal``, ``IntLiteral``, ``int_literal``).  The emitter needs
three spellings of each: a class name, a snake_case identifier for
variables, fields and routines, and a Python literal for strings and
patterns.
"""

from __future__ import annotations

import keyword
import re

from hpgen.model import Entity, Property

__all__ = [
    "make_identifier",
    "class_name",
    "snake_case",
    "variable",
    "field_name",
    "routine",
    "extractor",
    "string_literal",
]

# names the generated module imports or defines at top level
_MODULE_NAMES = frozenset({"re", "ParserBase", "format_literal", "Extracting"})

# locals of a generated routine
_ROUTINE_LOCALS = re.compile(r"(self|attempt|alt[0-9]+)\Z")

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def make_identifier(name: str) -> str:
    """Convert a name to a valid Python identifier."""
    result = name.replace("-", "_")
    result = re.sub(r"[^a-zA-Z0-9_]", "", result)
    if result and result[0].isdigit():
        result = "_" + result
    if keyword.iskeyword(result) or result in _MODULE_NAMES \
            or _ROUTINE_LOCALS.match(result):
        result = result + "_"
    return result or "_unnamed"


def _words(name: str) -> list:
    spaced = _WORD_BOUNDARY.sub("_", name)
    return [w for w in re.split(r"[^a-zA-Z0-9]+", spaced) if w]


def class_name(name: str) -> str:
    """``int-literal`` / ``int_literal`` / ``IntLiteral`` -> ``IntLiteral``."""
    words = _words(name)
    if not words:
        return make_identifier(name)
    return make_identifier("".join(w[:1].upper() + w[1:] for w in words))


def snake_case(name: str) -> str:
    """``IntLiteral`` / ``int-literal`` -> ``int_literal``."""
    words = _words(name)
    if not words:
        return make_identifier(name)
    return make_identifier("_".join(w.lower() for w in words))


def variable(entity: Entity) -> str:
    """Name of the local result slot inside the entity's routine."""
    return snake_case(entity.name)


def field_name(prop: Property) -> str:
    return snake_case(prop.name)


def routine(entity: Entity) -> str:
    return "parse_" + snake_case(entity.name)


def extractor(entity: Entity) -> str:
    """Reference to the entity's compiled pattern in the extraction table."""
    return "Extracting." + class_name(entity.name)


def string_literal(text: str) -> str:
    """Render *text* as a Python string literal."""
    return repr(text)
