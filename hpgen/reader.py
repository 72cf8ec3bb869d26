"""hpgen/reader.py – S-expression → grammar model reader.

Converts the output of ``sexpdata.loads`` (nested Python lists,
:class:`sexpdata.Symbol`, strings, ints) into a resolved, closed
:class:`hpgen.model.Model`.

Design principles
-----------------
* **Two passes** – the first pass declares every entity by name, the
  second fills in supers, properties and parse actions, so forward
  references resolve naturally.
* **Head-symbol dispatch** – every action list ``(tag ...)`` is
  dispatched on ``tag`` to a dedicated ``_read_<tag>`` helper.
* **Fail-fast** – anything unexpected raises ``ModelSyntaxError`` (shape)
  or ``ModelError`` (dangling reference, broken invariant); nothing is
  silently ignored.  The generator trusts whatever this module returns.

Public API
----------
``read_model(text: str, filename: str = "<model>") -> Model``
    Read a complete model from source text.

``read_model_file(path) -> Model``
    Read a model from a file.

Surface syntax
--------------
::

    (model
      (root <Entity>)
      (entity <Name>
        (virtual)
        (supers <Entity> ...)
        (rule "<grammar rule text>")
        (property <name> (type <Entity>|string|bool) (plural) (plural-parent))
        (parse <action>)))

    ;; actions, each optionally followed by modifiers
    (lit "<text>" <mod>...)
    (pattern "<regex>" <mod>...)
    (ref <Entity> <mod>...)
    (all <action>... <mod>...)
    (any "<label>" <action>... <mod>...)

    ;; modifiers
    (optional) (plural) (plural-parent) (bind <property>)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import sexpdata
from sexpdata import Symbol

from hpgen.errors import HpgErrorCodes, ModelError, ModelSyntaxError, SourceSpan
from hpgen.model import (
    Alternation,
    Entity,
    EntityReference,
    LiteralMatch,
    Model,
    ParseAction,
    PatternMatch,
    Property,
    Rule,
    Sequence,
    ValueKind,
)
from hpgen.visitor import ActionCollector

logger = logging.getLogger(__name__)

__all__ = [
    "read_model",
    "read_model_file",
    "ModelReader",
]

# Type alias for raw sexpdata output
Sexp = Any  # Union[list, Symbol, str, int, float]

_MODIFIERS = frozenset({"optional", "plural", "plural-parent", "bind"})

_VALUE_KINDS = {
    "string": ValueKind.TEXT,
    "text": ValueKind.TEXT,
    "bool": ValueKind.BOOL,
}


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

def _sym_name(s: Sexp) -> str:
    """Extract the name of a ``sexpdata.Symbol``, or raise."""
    if isinstance(s, Symbol):
        return str(s)
    raise ModelSyntaxError(f"Expected symbol, got {type(s).__name__}: {s!r}")


def _as_str(s: Sexp) -> str:
    """Accept a symbol or a string literal."""
    if isinstance(s, Symbol):
        return str(s)
    if isinstance(s, str):
        return s
    raise ModelSyntaxError(f"Expected string or symbol, got {type(s).__name__}: {s!r}")


def _as_text(s: Sexp) -> str:
    """Accept only a string literal (not a bare symbol)."""
    if isinstance(s, str) and not isinstance(s, Symbol):
        return s
    raise ModelSyntaxError(f"Expected string literal, got {s!r}")


def _is_form(s: Sexp) -> bool:
    return isinstance(s, list) and bool(s) and isinstance(s[0], Symbol)


def _head(s: Sexp) -> str:
    """Return the head symbol name of a list form ``(tag ...)``."""
    if not isinstance(s, list):
        raise ModelSyntaxError(f"Expected list form (tag ...), got: {s!r}")
    if not s:
        raise ModelSyntaxError("Unexpected empty list")
    return _sym_name(s[0])


def _expect_list(s: Sexp, *, min_len: int = 0, tag: Optional[str] = None) -> list:
    if not isinstance(s, list):
        raise ModelSyntaxError(f"Expected list{f' ({tag} ...)' if tag else ''}, got {s!r}")
    if len(s) < min_len:
        raise ModelSyntaxError(
            f"List too short: expected at least {min_len} elements, got {len(s)}: {s!r}"
        )
    if tag is not None and _head(s) != tag:
        raise ModelSyntaxError(f"Expected ({tag} ...), got ({_head(s)} ...)")
    return s


_ENTITY_FORM = re.compile(r'\(\s*entity\s+"?([^\s()"]+)')


def _entity_locations(text: str) -> Dict[str, Tuple[int, int]]:
    """Line and column (1-based) of each ``(entity NAME`` form in *text*."""
    locations: Dict[str, Tuple[int, int]] = {}
    for number, line in enumerate(text.splitlines(), start=1):
        code = line.split(";", 1)[0]
        for match in _ENTITY_FORM.finditer(code):
            locations.setdefault(match.group(1), (number, match.start() + 1))
    return locations


def _split_modifiers(items: List[Sexp]) -> Tuple[List[Sexp], List[list]]:
    """Separate trailing ``(optional)``-style modifiers from operands."""
    operands: List[Sexp] = []
    modifiers: List[list] = []
    for item in items:
        if _is_form(item) and _head(item) in _MODIFIERS:
            modifiers.append(item)
        else:
            operands.append(item)
    return operands, modifiers


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

_ACTION_DISPATCH: Dict[str, Callable[..., ParseAction]] = {}


def _register(tag: str):
    """Decorator: register an action reader under *tag*."""
    def deco(fn):
        _ACTION_DISPATCH[tag] = fn
        return fn
    return deco


@_register("lit")
def _read_lit(reader: "ModelReader", entity: Entity, operands: List[Sexp]) -> ParseAction:
    if len(operands) != 1:
        raise ModelSyntaxError(f"(lit ...) takes exactly one string, got {operands!r}")
    return LiteralMatch(_as_text(operands[0]))


@_register("pattern")
def _read_pattern(reader: "ModelReader", entity: Entity, operands: List[Sexp]) -> ParseAction:
    if len(operands) != 1:
        raise ModelSyntaxError(f"(pattern ...) takes exactly one string, got {operands!r}")
    return PatternMatch(_as_text(operands[0]), entity=entity)


@_register("ref")
def _read_ref(reader: "ModelReader", entity: Entity, operands: List[Sexp]) -> ParseAction:
    if len(operands) != 1:
        raise ModelSyntaxError(f"(ref ...) takes exactly one entity name, got {operands!r}")
    return EntityReference(entity=reader.lookup(_as_str(operands[0]), context=entity))


@_register("all")
def _read_all(reader: "ModelReader", entity: Entity, operands: List[Sexp]) -> ParseAction:
    return Sequence([reader.read_action(entity, op) for op in operands])


@_register("any")
def _read_any(reader: "ModelReader", entity: Entity, operands: List[Sexp]) -> ParseAction:
    if not operands:
        raise ModelSyntaxError("(any ...) needs a label")
    label = _as_str(operands[0])
    return Alternation([reader.read_action(entity, op) for op in operands[1:]], label=label)


# ═══════════════════════════════════════════════════════════════════════
#  Reader
# ═══════════════════════════════════════════════════════════════════════

class ModelReader:
    """Reads one model; not reusable across models."""

    def __init__(self, filename: str = "<model>") -> None:
        self.filename = filename
        self.entities: Dict[str, Entity] = {}
        self._clauses: Dict[str, List[list]] = {}
        self._locations: Dict[str, Tuple[int, int]] = {}

    def _span(self, name: Optional[str] = None) -> SourceSpan:
        """Where entity *name* is declared; the bare file when unknown."""
        line, column = self._locations.get(name, (0, 0))
        return SourceSpan(file=self.filename, line=line, column=column)

    # -- entry -------------------------------------------------------

    def read(self, text: str) -> Model:
        self._locations = _entity_locations(text)
        try:
            tree = sexpdata.loads(text)
        except Exception as exc:
            raise ModelSyntaxError(
                f"malformed model: {exc}",
                code=HpgErrorCodes.MALFORMED_SEXP,
                span=self._span(),
            ) from exc
        form = _expect_list(tree, tag="model")

        root_name: Optional[str] = None
        for item in form[1:]:
            tag = _head(item)
            if tag == "root":
                _expect_list(item, min_len=2)
                root_name = _as_str(item[1])
            elif tag == "entity":
                self._declare(item)
            else:
                raise ModelSyntaxError(
                    f"Unknown model clause: ({tag} ...)",
                    code=HpgErrorCodes.UNKNOWN_CLAUSE,
                    span=self._span(),
                )
        if not self.entities:
            raise ModelError(
                "model declares no entities",
                code=HpgErrorCodes.EMPTY_MODEL,
                span=self._span(),
            )

        for name, entity in self.entities.items():
            self._define(entity, self._clauses[name])

        root = self.lookup(root_name) if root_name is not None else None
        model = Model(entities=list(self.entities.values()), root=root)
        self._validate(model)
        logger.info("read model from %s: %s", self.filename, model.summary())
        return model

    # -- pass 1 ------------------------------------------------------

    def _declare(self, form: list) -> None:
        _expect_list(form, min_len=2, tag="entity")
        name = _as_str(form[1])
        if name in self.entities:
            raise ModelError(
                f"entity {name} is declared more than once",
                code=HpgErrorCodes.DUPLICATE_ENTITY,
                span=self._span(name),
            )
        self.entities[name] = Entity(name)
        self._clauses[name] = [_expect_list(c, min_len=1) for c in form[2:]]

    def lookup(self, name: str, context: Optional[Entity] = None) -> Entity:
        try:
            return self.entities[name]
        except KeyError:
            where = f" (referenced from {context.name})" if context is not None else ""
            raise ModelError(
                f"undefined entity {name}{where}",
                code=HpgErrorCodes.UNDEFINED_ENTITY,
                span=self._span(context.name if context is not None else None),
            ) from None

    # -- pass 2 ------------------------------------------------------

    def _define(self, entity: Entity, clauses: List[list]) -> None:
        # properties first: parse actions bind to them by name
        ordered = sorted(clauses, key=lambda c: 0 if _head(c) == "property" else 1)
        for clause in ordered:
            tag = _head(clause)
            if tag == "virtual":
                entity.is_virtual = True
            elif tag == "supers":
                entity.supers = [self.lookup(_as_str(s), context=entity) for s in clause[1:]]
            elif tag == "rule":
                _expect_list(clause, min_len=2)
                entity.rule = Rule(_as_text(clause[1]))
            elif tag == "property":
                self._read_property(entity, clause)
            elif tag == "parse":
                _expect_list(clause, min_len=2)
                entity.parse_action = self.read_action(entity, clause[1])
            else:
                raise ModelSyntaxError(
                    f"Unknown clause ({tag} ...) in entity {entity.name}",
                    code=HpgErrorCodes.UNKNOWN_CLAUSE,
                    span=self._span(entity.name),
                )

    def _read_property(self, entity: Entity, clause: list) -> None:
        _expect_list(clause, min_len=2)
        name = _as_str(clause[1])
        if any(p.name == name for p in entity.properties):
            raise ModelError(
                f"property {entity.name}.{name} is declared more than once",
                code=HpgErrorCodes.DUPLICATE_PROPERTY,
                span=self._span(entity.name),
            )
        prop = Property(name, entity, kind=ValueKind.TEXT)
        for option in clause[2:]:
            tag = _head(option)
            if tag == "type":
                _expect_list(option, min_len=2)
                type_name = _as_str(option[1])
                if type_name in _VALUE_KINDS:
                    prop.kind = _VALUE_KINDS[type_name]
                else:
                    prop.type = self.lookup(type_name, context=entity)
                    prop.kind = ValueKind.ENTITY
            elif tag == "plural":
                prop.is_plural = True
            elif tag == "plural-parent":
                prop.has_plural_parent = True
            else:
                raise ModelSyntaxError(
                    f"Unknown property option ({tag} ...) on {entity.name}.{name}",
                    span=self._span(entity.name),
                )
        entity.properties.append(prop)

    def read_action(self, entity: Entity, form: Sexp) -> ParseAction:
        tag = _head(form)
        reader = _ACTION_DISPATCH.get(tag)
        if reader is None:
            raise ModelSyntaxError(
                f"Unknown parse action ({tag} ...) in entity {entity.name}",
                code=HpgErrorCodes.UNKNOWN_ACTION,
                span=self._span(entity.name),
            )
        operands, modifiers = _split_modifiers(form[1:])
        action = reader(self, entity, operands)
        for modifier in modifiers:
            self._apply_modifier(entity, action, modifier)
        return action

    def _apply_modifier(self, entity: Entity, action: ParseAction, modifier: list) -> None:
        tag = _head(modifier)
        if tag == "optional":
            action.is_optional = True
        elif tag == "plural":
            action.is_plural = True
        elif tag == "plural-parent":
            action.has_plural_parent = True
        elif tag == "bind":
            _expect_list(modifier, min_len=2)
            name = _as_str(modifier[1])
            try:
                prop = entity.get_property(name)
            except KeyError:
                raise ModelError(
                    f"undefined property {entity.name}.{name}",
                    code=HpgErrorCodes.UNDEFINED_PROPERTY,
                    span=self._span(entity.name),
                ) from None
            action.property = prop
            action.has_plural_parent = action.has_plural_parent or prop.has_plural_parent

    # -- invariants --------------------------------------------------

    def _validate(self, model: Model) -> None:
        for entity in model:
            if isinstance(entity.parse_action, PatternMatch) and not entity.is_virtual:
                raise ModelError(
                    f"entity {entity.name} is recognised by a pattern and must be virtual",
                    code=HpgErrorCodes.PATTERN_NOT_VIRTUAL,
                    span=self._span(entity.name),
                ).with_hint(f"add (virtual) to entity {entity.name}")
            if entity.parse_action is None:
                continue
            if entity.is_virtual and not entity.is_extractor:
                binders = ActionCollector(lambda a: a.property is not None)
                binders.visit(entity.parse_action)
                if not binders.found:
                    logger.warning(
                        "%s: virtual entity %s binds no result; its routine always returns None",
                        self._span(entity.name), entity.name,
                    )
            collector = ActionCollector(lambda a: isinstance(a, PatternMatch))
            collector.visit(entity.parse_action)
            for action in collector.found:
                if action is not entity.parse_action:
                    raise ModelError(
                        f"entity {entity.name} uses a pattern below its root",
                        code=HpgErrorCodes.INLINE_PATTERN,
                        span=self._span(entity.name),
                    ).with_hint("declare the pattern as a virtual entity and reference it")
                try:
                    re.compile(action.pattern)
                except re.error as exc:
                    raise ModelError(
                        f"invalid pattern {action.pattern!r} in {entity.name}: {exc}",
                        code=HpgErrorCodes.INVALID_PATTERN,
                        span=self._span(entity.name),
                    ) from exc


def read_model(text: str, filename: str = "<model>") -> Model:
    """Read a model from S-expression source text."""
    return ModelReader(filename).read(text)


def read_model_file(path: Union[str, Path]) -> Model:
    p = Path(path)
    return read_model(p.read_text(encoding="utf-8"), filename=str(p))
