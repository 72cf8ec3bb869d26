# tests/conftest.py
"""
Shared fixtures for the hpgen test-suite: model sources in the S-expression
format read by ``hpgen.reader``, helpers for building models by hand, and a
helper that generates a parser module and executes it in-process.
"""

from typing import Any, Dict, Optional

import pytest

from hpgen.codegen import GeneratorConfig, generate
from hpgen.model import Entity, Model, ParseAction, Property, ValueKind
from hpgen.reader import read_model


# ═══════════════════════════════════════════════════════════════════════════
# Model sources
# ═══════════════════════════════════════════════════════════════════════════

# A pattern leaf on its own.
DIGIT_MODEL = """
(model
  (entity Digit (virtual) (parse (pattern "[0-9]"))))
"""

# Repetition over a pattern leaf, collected into a plural property.
NUMBER_MODEL = """
(model
  (root Number)
  (entity Digit (virtual) (parse (pattern "[0-9]")))
  (entity Number
    (rule "number ::= { digit } ;")
    (property digits (type Digit) (plural))
    (parse (ref Digit (plural) (bind digits)))))
"""

# Two literals in sequence, nothing bound.
GREETING_MODEL = """
(model
  (entity Greeting
    (rule "greeting ::= 'hello' 'world' ;")
    (parse (all (lit "hello") (lit "world")))))
"""

# A virtual hierarchy with no root action of its own.
VALUE_MODEL = """
(model
  (root Value)
  (entity Literal (virtual))
  (entity Value (virtual) (supers Literal))
  (entity IntLiteral
    (supers Value)
    (property value (type Int))
    (parse (ref Int (bind value))))
  (entity StringLiteral
    (supers Value)
    (property value (type Word))
    (parse (ref Word (bind value))))
  (entity Int (virtual) (parse (pattern "[0-9]+")))
  (entity Word (virtual) (parse (pattern "[a-z]+"))))
"""

# A virtual entity that dispatches to concrete subtypes.
DISPATCH_MODEL = """
(model
  (root Value)
  (entity Value (virtual)
    (property literal (type Value))
    (parse (any "value"
      (ref IntLiteral (bind literal))
      (ref StringLiteral (bind literal)))))
  (entity IntLiteral
    (supers Value)
    (property value (type Int))
    (parse (ref Int (bind value))))
  (entity StringLiteral
    (supers Value)
    (property value (type Word))
    (parse (all (lit "'") (ref Word (bind value)) (lit "'"))))
  (entity Int (virtual) (parse (pattern "[0-9]+")))
  (entity Word (virtual) (parse (pattern "[a-z]+"))))
"""

# A repeated group whose passes accumulate into a plural-parent property,
# followed by an optional literal recorded as a boolean.
LIST_MODEL = """
(model
  (root Numbers)
  (entity Int (virtual) (parse (pattern "[0-9]+")))
  (entity Numbers
    (property values (type Int) (plural-parent))
    (property closed (type bool))
    (parse (all
      (lit "[")
      (all (ref Int (bind values)) (lit ",") (plural))
      (lit "]" (optional) (bind closed))))))
"""

# Ordered choice between overlapping literals.
OPERATOR_MODEL = """
(model
  (entity Operator
    (property symbol (type string))
    (parse (any "operator"
      (lit "a" (bind symbol))
      (lit "ab" (bind symbol))
      (lit "b" (bind symbol))))))
"""

# Nested entities, an optional reference and a nested alternation.
ASSIGNMENT_MODEL = """
(model
  (root Assignment)
  (entity Assignment
    (rule "assignment ::= identifier [ annotation ] '=' expression ;")
    (property name (type Identifier))
    (property annotation (type Annotation))
    (property operator (type string))
    (property value (type Expression))
    (parse (all
      (ref Identifier (bind name))
      (ref Annotation (optional) (bind annotation))
      (any "assignment operator"
        (lit "=" (bind operator))
        (any "compound operator"
          (lit "+=" (bind operator))
          (lit "-=" (bind operator))))
      (ref Expression (bind value)))))
  (entity Annotation
    (property type (type Identifier))
    (parse (all (lit ":") (ref Identifier (bind type)))))
  (entity Expression (virtual)
    (property expression (type Expression))
    (parse (any "expression"
      (ref Number (bind expression))
      (ref Variable (bind expression)))))
  (entity Number
    (supers Expression)
    (property digits (type Int))
    (parse (ref Int (bind digits))))
  (entity Variable
    (supers Expression)
    (property name (type Identifier))
    (parse (ref Identifier (bind name))))
  (entity Identifier (virtual) (parse (pattern "[A-Za-z_][A-Za-z0-9_]*")))
  (entity Int (virtual) (parse (pattern "[0-9]+"))))
"""

# A whitespace entity restricting skipped whitespace to spaces.
WHITESPACE_MODEL = """
(model
  (root Pair)
  (entity _ (virtual) (parse (pattern "[ ]*")))
  (entity Word (virtual) (parse (pattern "[a-z]+")))
  (entity Pair
    (property left (type Word))
    (property right (type Word))
    (parse (all (ref Word (bind left)) (ref Word (bind right))))))
"""

# A repeated literal accumulated into a plural-parent text property.
DOTS_MODEL = """
(model
  (root Dots)
  (entity Dots
    (property dots (type string) (plural-parent))
    (parse (all (lit "." (plural) (bind dots)) (lit ";")))))
"""

# An entity whose routine can succeed without consuming input.
MARKS_MODEL = """
(model
  (root Marks)
  (entity Mark
    (property bang (type bool))
    (parse (lit "!" (optional) (bind bang))))
  (entity Marks
    (property marks (type Mark) (plural))
    (parse (ref Mark (plural) (bind marks)))))
"""

# Entity names that coincide with names of the generated module.
CLASHING_MODEL = """
(model
  (root ParserBase)
  (entity Extracting (virtual))
  (entity ParserBase
    (supers Extracting)
    (property name (type Word))
    (parse (ref Word (bind name))))
  (entity Alt1
    (property word (type Word))
    (parse (any "word" (ref Word (bind word)) (lit "-"))))
  (entity Word (virtual) (parse (pattern "[a-z]+"))))
"""

# An entity named like the default parser class.
PARSER_MODEL = """
(model
  (entity Parser
    (property name (type Word))
    (parse (ref Word (bind name))))
  (entity Word (virtual) (parse (pattern "[a-z]+"))))
"""

ALL_MODELS = [
    DIGIT_MODEL,
    NUMBER_MODEL,
    GREETING_MODEL,
    VALUE_MODEL,
    DISPATCH_MODEL,
    LIST_MODEL,
    OPERATOR_MODEL,
    ASSIGNMENT_MODEL,
    WHITESPACE_MODEL,
    DOTS_MODEL,
    MARKS_MODEL,
    CLASHING_MODEL,
]


# ═══════════════════════════════════════════════════════════════════════════
# Hand-built models
# ═══════════════════════════════════════════════════════════════════════════

def make_entity(
    name: str,
    virtual: bool = False,
    supers: Optional[list] = None,
    action: Optional[ParseAction] = None,
) -> Entity:
    return Entity(name, is_virtual=virtual, supers=list(supers or []), parse_action=action)


def make_property(
    owner: Entity,
    name: str,
    type: Optional[Entity] = None,
    kind: ValueKind = ValueKind.ENTITY,
    plural: bool = False,
    plural_parent: bool = False,
) -> Property:
    """Create a property and attach it to *owner*."""
    prop = Property(
        name,
        owner,
        type=type,
        kind=kind,
        is_plural=plural,
        has_plural_parent=plural_parent,
    )
    owner.properties.append(prop)
    return prop


def make_model(*entities: Entity, root: Optional[Entity] = None) -> Model:
    return Model(entities=list(entities), root=root)


# ═══════════════════════════════════════════════════════════════════════════
# Generated-parser helpers
# ═══════════════════════════════════════════════════════════════════════════

def build_namespace(source: str, config: Optional[GeneratorConfig] = None) -> Dict[str, Any]:
    """Read a model, generate its parser and exec it; return the namespace."""
    code = generate(read_model(source), config)
    ns: Dict[str, Any] = {}
    exec(compile(code, "<generated>", "exec"), ns)
    return ns


def build_parser(source: str, config: Optional[GeneratorConfig] = None) -> Any:
    """Return a fresh instance of the generated ``Parser`` class."""
    ns = build_namespace(source, config)
    name = config.parser_class if config is not None else "Parser"
    return ns[name]()


@pytest.fixture
def model_file(tmp_path):
    """Write a model source into a temporary ``.hpg`` file."""
    def _write(source: str, name: str = "grammar.hpg"):
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return path
    return _write
