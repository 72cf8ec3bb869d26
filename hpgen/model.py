"""hpgen/model.py – The structural model of a grammar.

A ``Model`` is what the grammar front-end hands to the generator: an
ordered collection of ``Entity`` objects, each with its ``Property``
fields and exactly one root ``ParseAction`` describing how the entity is
recognised from input.

Design invariants
-----------------
* The model graph is built once (by :mod:`hpgen.reader` or by hand) and
  is read-only afterwards; the generator never mutates it.
* Declaration order of entities is significant: it becomes emission
  order.
* A virtual entity declares no fields and is never constructed.  Its
  properties, if any, only name what a dispatch routine binds its
  result from.
* An entity whose root action is a ``PatternMatch`` is virtual; it is a
  named extractor rather than a constructible type.
* The graph is cyclic (properties point back at their owning entity), so
  nodes compare by identity and keep their ``repr`` shallow.

Module layout
-------------
§1  Entities and properties
§2  Parse actions (closed union: literal, pattern, reference, sequence,
    alternation)
§3  Model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

if TYPE_CHECKING:
    from hpgen.visitor import ActionVisitor


# ════════════════════════════════════════════════════════════════════════
# §1  Entities and properties
# ════════════════════════════════════════════════════════════════════════

class ValueKind(Enum):
    """What kind of value a property holds."""

    ENTITY = auto()   # an instance (or dispatch result) of the referenced entity
    TEXT = auto()     # matched text: literals and pattern extractors
    BOOL = auto()     # whether an (optional) literal was present


@dataclass(frozen=True)
class Rule:
    """The grammar rule an entity was derived from, kept for annotation."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(eq=False)
class Entity:
    """A named grammar construct.

    Non-virtual entities become constructible classes with one field per
    property.  Virtual entities are capability markers used for
    polymorphic dispatch or as labels for pattern extractors.
    """

    name: str
    is_virtual: bool = False
    supers: List["Entity"] = field(default_factory=list)
    properties: List["Property"] = field(default_factory=list)
    parse_action: Optional["ParseAction"] = None
    rule: Optional[Rule] = None

    @property
    def virtual_supers(self) -> List["Entity"]:
        """Supers that become base types; non-virtual supers are dropped."""
        return [s for s in self.supers if s.is_virtual]

    @property
    def is_extractor(self) -> bool:
        """True for pattern-only leaves, served by the extraction table."""
        return self.is_virtual and isinstance(self.parse_action, PatternMatch)

    @property
    def pattern(self) -> Optional[str]:
        if isinstance(self.parse_action, PatternMatch):
            return self.parse_action.pattern
        return None

    def has_plural_property(self) -> bool:
        return any(p.is_sequence for p in self.properties)

    def get_property(self, name: str) -> "Property":
        for prop in self.properties:
            if prop.name == name:
                return prop
        raise KeyError(name)

    def __repr__(self) -> str:
        kind = "virtual " if self.is_virtual else ""
        return f"<{kind}Entity {self.name}>"


@dataclass(eq=False)
class Property:
    """A field of a non-virtual entity.

    ``type`` is the referenced entity (``None`` for plain text or boolean
    values).  ``has_plural_parent`` marks a property that lives inside a
    repeating structure one level up: it is accumulated, never overwritten.
    """

    name: str
    entity: Entity
    type: Optional[Entity] = None
    kind: ValueKind = ValueKind.ENTITY
    is_plural: bool = False
    has_plural_parent: bool = False

    @property
    def is_sequence(self) -> bool:
        """True when the field holds a list rather than a scalar."""
        return self.is_plural or self.has_plural_parent

    @property
    def value_kind(self) -> ValueKind:
        # values produced by an extractor are the matched text
        if self.type is not None and self.type.is_extractor:
            return ValueKind.TEXT
        if self.type is None and self.kind is ValueKind.ENTITY:
            return ValueKind.TEXT
        return self.kind

    def __repr__(self) -> str:
        flags = "".join([
            "*" if self.is_plural else "",
            "^" if self.has_plural_parent else "",
        ])
        return f"<Property {self.entity.name}.{self.name}{flags}>"


# ════════════════════════════════════════════════════════════════════════
# §2  Parse actions
# ════════════════════════════════════════════════════════════════════════
#
# A closed union.  Every variant dispatches through ``accept`` to exactly
# one ``visit_*`` method; the base class dispatches to ``generic_visit``,
# which the translator treats as an internal fault.
#
# ────────────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class ParseAction:
    """Common modifiers shared by every recognition strategy."""

    is_optional: bool = field(default=False, kw_only=True)
    is_plural: bool = field(default=False, kw_only=True)
    has_plural_parent: bool = field(default=False, kw_only=True)
    property: Optional[Property] = field(default=None, kw_only=True, repr=False)

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.generic_visit(self)

    def _modifiers(self) -> str:
        mods = []
        if self.is_optional:
            mods.append("?")
        if self.is_plural:
            mods.append("*")
        if self.has_plural_parent:
            mods.append("^")
        if self.property is not None:
            mods.append(f"->{self.property.name}")
        return "".join(mods)


@dataclass(eq=False)
class LiteralMatch(ParseAction):
    """Match an exact token."""

    text: str = ""

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.visit_literal_match(self)

    def __repr__(self) -> str:
        return f"LiteralMatch({self.text!r}){self._modifiers()}"


@dataclass(eq=False)
class PatternMatch(ParseAction):
    """Match through the extractor registered under ``entity``'s name."""

    pattern: str = ""
    entity: Optional[Entity] = field(default=None, repr=False)

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.visit_pattern_match(self)

    def __repr__(self) -> str:
        return f"PatternMatch({self.pattern!r}){self._modifiers()}"


@dataclass(eq=False)
class EntityReference(ParseAction):
    """Recognise by delegating to another entity."""

    entity: Optional[Entity] = field(default=None, repr=False)

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.visit_entity_reference(self)

    def __repr__(self) -> str:
        name = self.entity.name if self.entity is not None else "?"
        return f"EntityReference({name}){self._modifiers()}"


@dataclass(eq=False)
class Sequence(ParseAction):
    """Ordered sub-actions, all of which must succeed."""

    actions: List[ParseAction] = field(default_factory=list)

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.visit_sequence(self)

    def __repr__(self) -> str:
        return f"Sequence({self.actions!r}){self._modifiers()}"


@dataclass(eq=False)
class Alternation(ParseAction):
    """Ordered sub-actions tried in turn; the first success wins.

    ``label`` names the construct in the diagnostic raised when every
    option fails.
    """

    actions: List[ParseAction] = field(default_factory=list)
    label: str = ""

    def accept(self, visitor: "ActionVisitor") -> Any:
        return visitor.visit_alternation(self)

    def __repr__(self) -> str:
        return f"Alternation({self.label!r}, {self.actions!r}){self._modifiers()}"


# ════════════════════════════════════════════════════════════════════════
# §3  Model
# ════════════════════════════════════════════════════════════════════════

#: Name of the entity whose pattern, when present, is the whitespace skipped
#: between tokens by the generated parser.
WHITESPACE_ENTITY = "_"


@dataclass(eq=False)
class Model:
    """Root entity plus all entities in declaration order."""

    entities: List[Entity] = field(default_factory=list)
    root: Optional[Entity] = None

    def __post_init__(self) -> None:
        if self.root is None and self.entities:
            self.root = self.entities[0]

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self.entities)

    def __getitem__(self, name: str) -> Entity:
        for entity in self.entities:
            if entity.name == name:
                return entity
        raise KeyError(name)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)

    @property
    def extractors(self) -> List[Entity]:
        """Entities whose root action is a pattern, in declaration order."""
        return [e for e in self.entities if isinstance(e.parse_action, PatternMatch)]

    @property
    def whitespace(self) -> Optional[str]:
        if WHITESPACE_ENTITY in self:
            return self[WHITESPACE_ENTITY].pattern
        return None

    def summary(self) -> Dict[str, int]:
        return {
            "entities": len(self.entities),
            "virtual": sum(1 for e in self.entities if e.is_virtual),
            "properties": sum(len(e.properties) for e in self.entities),
            "extractors": len(self.extractors),
        }

    def __repr__(self) -> str:
        root = self.root.name if self.root is not None else None
        return f"<Model root={root} entities={len(self.entities)}>"


__all__ = [
    "ValueKind",
    "Rule",
    "Entity",
    "Property",
    "ParseAction",
    "LiteralMatch",
    "PatternMatch",
    "EntityReference",
    "Sequence",
    "Alternation",
    "WHITESPACE_ENTITY",
    "Model",
]
