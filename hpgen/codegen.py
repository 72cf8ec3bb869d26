#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
hpgen/codegen.py
================

Code generator for grammar models.

This module transforms a resolved :class:`hpgen.model.Model` into the
source of a Python module implementing a recursive-descent parser.  The
generated module:

1. Imports the runtime primitives from `hpgen.runtime`
2. Declares one class per entity (virtual entities as field-less markers)
3. Declares a `Parser` class with one `parse_<entity>` routine per entity
4. Declares the `Extracting` table of compiled patterns

Architecture
------------
The generator is a single read-only pass over the model:

1. **Entity declarations** — `EntityEmitter`, once per entity
2. **Recognition routines** — `ParserEmitter`, once per entity, which
   drives the `ActionTranslator` over the entity's action tree
3. **Extraction table** — `ExtractionEmitter`, once for the model

Each pass returns a text fragment; `ParserGenerator` joins the fragments
once, in that order, behind the optional banner and the import block.
Apart from the banner's timestamp the output is a pure function of the
model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from hpgen import formatting as F
from hpgen.errors import CodeGenError, HpgErrorCodes, InternalError
from hpgen.model import (
    Alternation,
    Entity,
    EntityReference,
    LiteralMatch,
    Model,
    ParseAction,
    PatternMatch,
    Property,
    Sequence,
    ValueKind,
)
from hpgen.visitor import ActionVisitor

logger = logging.getLogger(__name__)

__all__ = [
    "generate",
    "generate_parser",
    "CodeEmitter",
    "GeneratorConfig",
    "GeneratedParser",
    "ActionTranslator",
    "EntityEmitter",
    "ParserEmitter",
    "ExtractionEmitter",
    "ParserGenerator",
]


# ═══════════════════════════════════════════════════════════════════════════
# CODE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class CodeEmitter:
    """Append-only line buffer with indentation management."""

    def __init__(self, indent_str: str = "    ") -> None:
        self._lines: List[str] = []
        self._indent_str = indent_str
        self._indent_level = 0

    def emit(self, code: str) -> None:
        """Emit a line of code at the current indentation."""
        if code.strip():
            self._lines.append(self._indent_str * self._indent_level + code)
        else:
            self._lines.append("")

    def emit_lines(self, lines: List[str]) -> None:
        """Emit pre-indented lines relative to the current indentation."""
        for line in lines:
            self.emit(line)

    def emit_blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._lines.append("")

    def emit_comment(self, text: str) -> None:
        for line in text.split("\n"):
            self.emit(f"# {line}")

    def indent(self) -> None:
        self._indent_level += 1

    def dedent(self) -> None:
        self._indent_level = max(0, self._indent_level - 1)

    def block(self, header: str) -> "CodeEmitter._BlockContext":
        """Context manager for indented blocks."""
        return self._BlockContext(self, header)

    class _BlockContext:

        def __init__(self, emitter: "CodeEmitter", header: str) -> None:
            self._emitter = emitter
            self._header = header

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(self._header)
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()

    def get_code(self) -> str:
        return "\n".join(self._lines)


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURATION & RESULT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class GeneratorConfig:
    """Tuning knobs for the emitted module."""

    emit_info: bool = False
    emit_rule: bool = False
    sources: List[str] = field(default_factory=list)
    runtime_module: str = "hpgen.runtime"
    parser_class: str = "Parser"
    indent: str = "    "

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if not self.parser_class.isidentifier():
            warnings.append(f"parser_class {self.parser_class!r} is not a valid identifier")
        if not all(part.isidentifier() for part in self.runtime_module.split(".")):
            warnings.append(f"runtime_module {self.runtime_module!r} is not a dotted module name")
        if not self.indent or self.indent.strip():
            warnings.append("indent must be non-empty whitespace")
        if self.sources and not self.emit_info:
            warnings.append("sources are only listed in the info banner (emit_info is off)")
        return warnings


@dataclass
class GeneratedParser:
    """Generated module text plus what went into it."""

    body: str
    header: Optional[str]
    generation_time: str
    root: Optional[str]
    entities: List[str] = field(default_factory=list)
    routines: List[str] = field(default_factory=list)
    extractors: List[str] = field(default_factory=list)

    @property
    def code(self) -> str:
        if self.header:
            return self.header + "\n\n" + self.body
        return self.body

    def write_to_file(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.code)

    def summary(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "entities": len(self.entities),
            "routines": len(self.routines),
            "extractors": len(self.extractors),
        }

    def __str__(self) -> str:
        return self.code


# ═══════════════════════════════════════════════════════════════════════════
# ACTION TRANSLATOR
# ═══════════════════════════════════════════════════════════════════════════

class ActionTranslator(ActionVisitor):
    """Translate one entity's parse-action tree into routine body lines.

    Lines are returned indented relative to the routine's recoverable
    block.  Every translation is finished by two wraps: the optionality
    wrap around the statement, and, for value-producing actions, the
    assignment of the produced value into its bound property.
    """

    def __init__(self, entity: Entity, indent: str = "    ") -> None:
        self.entity = entity
        self.indent_str = indent
        self._depth = 0

    def translate(self, action: ParseAction) -> List[str]:
        """Translate *action* and apply its optionality wrap."""
        return self._wrap_optional(action, self.visit(action))

    # -- variants ----------------------------------------------------

    def visit_literal_match(self, action: LiteralMatch) -> List[str]:
        return [self._assign(action, self._match(action, F.string_literal(action.text)))]

    def visit_pattern_match(self, action: PatternMatch) -> List[str]:
        owner = action.entity or self.entity
        return [self._assign(action, self._match(action, F.extractor(owner)))]

    def visit_entity_reference(self, action: EntityReference) -> List[str]:
        target = action.entity
        if target is None:
            raise InternalError(
                f"entity reference in {self.entity.name} has no target",
                code=HpgErrorCodes.IRRECONCILABLE_BINDING,
            )
        if target.is_extractor:
            # pattern leaves are matched directly, bypassing any routine
            call = f"self.consume({F.extractor(target)})"
            step = f"lambda: {call}"
        elif target.parse_action is None:
            raise CodeGenError(
                f"{self.entity.name} references {target.name}, "
                f"which has no parse action to recognise it by"
            )
        else:
            step = f"self.{F.routine(target)}"
            call = f"{step}()"
        if action.is_plural:
            call = f"self.many({self._args(step)})"
        return [self._assign(action, call)]

    def visit_sequence(self, action: Sequence) -> List[str]:
        lines: List[str] = []
        for child in action.actions:
            lines.extend(self.translate(child))
        if not lines:
            lines = ["pass"]
        if action.is_plural:
            lines = self._wrap_repeat(lines)
        return lines

    def visit_alternation(self, action: Alternation) -> List[str]:
        label = F.string_literal(f"Expected: {action.label}")
        if not action.actions:
            lines = [f"self.fail({label})"]
        else:
            self._depth += 1
            chain = f"alt{self._depth}"
            lines = [f"with self.alternatives({self._args(label)}) as {chain}:"]
            for option in action.actions:
                lines.append(self.indent_str + f"with {chain}.option():")
                lines.extend(self._indent(self.translate(option), 2))
            self._depth -= 1
        if action.is_plural:
            lines = self._wrap_repeat(lines)
        return lines

    # -- wraps -------------------------------------------------------

    def _wrap_optional(self, action: ParseAction, lines: List[str]) -> List[str]:
        # optional literals already use the tolerant maybe_consume form
        if not action.is_optional or isinstance(action, LiteralMatch):
            return lines
        return [f"with self.maybe({self._args()}):"] + self._indent(lines)

    def _wrap_repeat(self, lines: List[str]) -> List[str]:
        return [
            f"for attempt in self.repeat({self._args()}):",
            self.indent_str + "with attempt:",
        ] + self._indent(lines, 2)

    def _assign(self, action: ParseAction, value: str) -> str:
        prop = action.property
        if prop is None:
            return value
        self._check_binding(action, prop)
        if isinstance(action, LiteralMatch) and prop.value_kind is ValueKind.BOOL \
                and not action.is_plural:
            value = f"{value} is not None"
        owner = prop.entity
        if owner.is_virtual:
            # virtual types hold no fields: the value is the result itself
            target = F.variable(owner)
        else:
            target = f"{F.variable(owner)}.{F.field_name(prop)}"
        if action.has_plural_parent:
            method = "extend" if action.is_plural else "append"
            return f"{target}.{method}({value})"
        return f"{target} = {value}"

    def _check_binding(self, action: ParseAction, prop: Property) -> None:
        if action.is_plural and not prop.is_sequence:
            raise InternalError(
                f"plural action {action!r} is bound to singular property "
                f"{prop.entity.name}.{prop.name}",
                code=HpgErrorCodes.IRRECONCILABLE_BINDING,
            )
        if action.has_plural_parent and prop.entity.is_virtual:
            raise InternalError(
                f"cannot accumulate into the result of virtual entity {prop.entity.name}",
                code=HpgErrorCodes.IRRECONCILABLE_BINDING,
            )

    # -- helpers -----------------------------------------------------

    def _match(self, action: ParseAction, expected: str) -> str:
        """Match *expected* once, or zero-or-more times for a plural leaf."""
        if action.is_plural:
            step = f"lambda: self.consume({expected})"
            return f"self.many({self._args(step)})"
        if action.is_optional and isinstance(action, LiteralMatch):
            return f"self.maybe_consume({expected})"
        return f"self.consume({expected})"

    def _args(self, *args: str) -> str:
        """Arguments for a runtime primitive, followed by the rollback slot."""
        parts = list(args)
        if not self.entity.is_virtual:
            parts.append(F.variable(self.entity))
        return ", ".join(parts)

    def _indent(self, lines: List[str], levels: int = 1) -> List[str]:
        prefix = self.indent_str * levels
        return [prefix + line for line in lines]


# ═══════════════════════════════════════════════════════════════════════════
# ENTITY DECLARATIONS
# ═══════════════════════════════════════════════════════════════════════════

class EntityEmitter:
    """Emit the class declaration for one entity."""

    def __init__(self, config: GeneratorConfig) -> None:
        self.config = config

    def emit(self, entity: Entity) -> str:
        emitter = CodeEmitter(self.config.indent)
        if self.config.emit_rule and entity.rule is not None:
            emitter.emit_comment(str(entity.rule))
        bases = ", ".join(F.class_name(s.name) for s in entity.virtual_supers)
        signature = f"class {F.class_name(entity.name)}({bases}):" if bases \
            else f"class {F.class_name(entity.name)}:"
        with emitter.block(signature):
            if entity.is_virtual:
                emitter.emit("pass")
            else:
                self._emit_constructor(emitter, entity)
                self._emit_str(emitter, entity)
        return emitter.get_code()

    def _emit_constructor(self, emitter: CodeEmitter, entity: Entity) -> None:
        if not entity.properties:
            return
        with emitter.block("def __init__(self):"):
            for prop in entity.properties:
                emitter.emit(f"self.{F.field_name(prop)} = {self._default(prop)}")
        emitter.emit_blank()

    @staticmethod
    def _default(prop: Property) -> str:
        if prop.is_sequence:
            return "[]"
        if prop.value_kind is ValueKind.BOOL:
            return "False"
        return "None"

    def _emit_str(self, emitter: CodeEmitter, entity: Entity) -> None:
        name = F.class_name(entity.name)
        with emitter.block("def __str__(self):"):
            if not entity.properties:
                emitter.emit(f"return {F.string_literal(name + '()')}")
                return
            emitter.emit(f"return {F.string_literal(name + '(')} + \", \".join([")
            emitter.indent()
            for prop in entity.properties:
                emitter.emit(self._render(prop) + ",")
            emitter.dedent()
            emitter.emit("]) + \")\"")

    @staticmethod
    def _render(prop: Property) -> str:
        attr = F.field_name(prop)
        label = F.string_literal(f"{attr} = ")
        if prop.is_sequence:
            return (
                f"{label} + \"[\" + \",\".join(str(item) for item in self.{attr}) + \"]\""
            )
        kind = prop.value_kind
        if kind is ValueKind.TEXT:
            return f"{label} + format_literal(self.{attr})"
        if kind is ValueKind.BOOL:
            return f"{label} + str(self.{attr})"
        return f"{label} + (\"null\" if self.{attr} is None else str(self.{attr}))"


# ═══════════════════════════════════════════════════════════════════════════
# RECOGNITION ROUTINES
# ═══════════════════════════════════════════════════════════════════════════

class ParserEmitter:
    """Emit the parser class: one recognition routine per entity."""

    def __init__(self, model: Model, config: GeneratorConfig) -> None:
        self.model = model
        self.config = config

    @staticmethod
    def has_routine(entity: Entity) -> bool:
        return entity.parse_action is not None and not entity.is_extractor

    def header(self) -> str:
        emitter = CodeEmitter(self.config.indent)
        emitter.emit(f"class {self.config.parser_class}(ParserBase):")
        whitespace = self.model.whitespace
        if whitespace is not None:
            emitter.indent()
            emitter.emit(f"WHITESPACE = {F.string_literal(whitespace)}")
        return emitter.get_code()

    def emit_routine(self, entity: Entity) -> str:
        emitter = CodeEmitter(self.config.indent)
        emitter.indent()
        if self.config.emit_rule and entity.rule is not None:
            emitter.emit_comment(str(entity.rule))
        name = F.routine(entity)
        slot = F.variable(entity)
        with emitter.block(f"def {name}(self):"):
            if entity.is_virtual:
                emitter.emit(f"{slot} = None")
                guard = F.string_literal(f"Failed to parse {F.class_name(entity.name)}")
            else:
                emitter.emit(f"{slot} = {F.class_name(entity.name)}()")
                guard = F.string_literal(
                    f"Failed to parse {F.class_name(entity.name)}"
                ) + f", {slot}"
            emitter.emit(f"self.log({F.string_literal(name)})")
            translator = ActionTranslator(entity, self.config.indent)
            with emitter.block(f"with self.attempt({guard}):"):
                emitter.emit_lines(translator.translate(entity.parse_action))
            emitter.emit(f"return {slot}")
        return emitter.get_code()

    def root_binding(self) -> Optional[str]:
        """Bind the root entity's recognition as the public entry point."""
        root = self.model.root
        if root is None:
            return None
        emitter = CodeEmitter(self.config.indent)
        emitter.indent()
        if self.has_routine(root):
            emitter.emit(f"parse_root = {F.routine(root)}")
        elif root.is_extractor:
            with emitter.block("def parse_root(self):"):
                emitter.emit(f"return self.consume({F.extractor(root)})")
        else:
            return None
        return emitter.get_code()


# ═══════════════════════════════════════════════════════════════════════════
# EXTRACTION TABLE
# ═══════════════════════════════════════════════════════════════════════════

class ExtractionEmitter:
    """Emit the single table of compiled patterns.

    Patterns are anchored by matching at the cursor (``Pattern.match``
    with a start position), never by rewriting the pattern text.
    """

    def __init__(self, config: GeneratorConfig) -> None:
        self.config = config

    def emit(self, model: Model) -> str:
        emitter = CodeEmitter(self.config.indent)
        with emitter.block("class Extracting:"):
            extractors = model.extractors
            if not extractors:
                emitter.emit("pass")
            for entity in extractors:
                emitter.emit(
                    f"{F.class_name(entity.name)} = "
                    f"re.compile({F.string_literal(entity.pattern or '')})"
                )
        return emitter.get_code()


# ═══════════════════════════════════════════════════════════════════════════
# ASSEMBLER
# ═══════════════════════════════════════════════════════════════════════════

class ParserGenerator:
    """Orders and concatenates the fragments of the generated module."""

    def __init__(self, config: Optional[GeneratorConfig] = None) -> None:
        self.config = config or GeneratorConfig()

    def generate(self, model: Optional[Model]) -> GeneratedParser:
        now = datetime.now()
        stamp = now.strftime("%A, %d %B %Y at %H:%M:%S")
        if model is None:
            return GeneratedParser("# no model generated", None, stamp, None)
        if not model.entities:
            return GeneratedParser("# no entities generated", None, stamp, None)

        self._check_names(model)
        declared = self._declaration_order(model)
        entity_emitter = EntityEmitter(self.config)
        parser_emitter = ParserEmitter(model, self.config)

        fragments: List[str] = [self._imports()]
        for entity in declared:
            logger.debug("declaring %s", entity.name)
            fragments.append(entity_emitter.emit(entity))

        routines: List[str] = []
        parser_fragments = [parser_emitter.header()]
        for entity in model.entities:
            if not ParserEmitter.has_routine(entity):
                continue
            logger.debug("emitting %s for %s", F.routine(entity), entity.name)
            parser_fragments.append(parser_emitter.emit_routine(entity))
            routines.append(F.routine(entity))
        binding = parser_emitter.root_binding()
        if binding is not None:
            parser_fragments.append(binding)
        if len(parser_fragments) == 1 and model.whitespace is None:
            parser_fragments[0] += "\n" + self.config.indent + "pass"
        fragments.append("\n\n".join(parser_fragments))

        fragments.append(ExtractionEmitter(self.config).emit(model))

        result = GeneratedParser(
            body="\n\n\n".join(fragments) + "\n",
            header=self._banner(stamp) if self.config.emit_info else None,
            generation_time=stamp,
            root=model.root.name if model.root is not None else None,
            entities=[e.name for e in declared],
            routines=routines,
            extractors=[e.name for e in model.extractors],
        )
        logger.info(
            "generated %d entities, %d routines, %d extractors",
            len(result.entities), len(result.routines), len(result.extractors),
        )
        return result

    def _banner(self, stamp: str) -> str:
        lines = [
            "# DO NOT EDIT THIS FILE",
            "# This file was generated using the Human Parser Generator",
            f"# on {stamp}",
        ]
        sources = self.config.sources
        if sources:
            plural = "s" if len(sources) > 1 else ""
            lines.append(f"# Source{plural} : {', '.join(sources)}")
        return "\n".join(lines)

    def _imports(self) -> str:
        return (
            "import re\n\n"
            f"from {self.config.runtime_module} import ParserBase, format_literal"
        )

    def _check_names(self, model: Model) -> None:
        """Every entity needs a class name of its own."""
        owners: Dict[str, str] = {self.config.parser_class: "the parser class"}
        for entity in model.entities:
            name = F.class_name(entity.name)
            if name in owners:
                raise CodeGenError(
                    f"entity {entity.name} and {owners[name]} would both be emitted as class {name}",
                    code=HpgErrorCodes.NAME_CLASH,
                ).with_hint("rename the entity, or choose another --parser-class")
            owners[name] = f"entity {entity.name}"

    @staticmethod
    def _declaration_order(model: Model) -> List[Entity]:
        """Model order, holding each class back until its bases exist."""
        pending = list(model.entities)
        ordered: List[Entity] = []
        done = set()
        while pending:
            for entity in pending:
                if all(s in done or s not in pending for s in entity.virtual_supers):
                    break
            else:
                names = ", ".join(e.name for e in pending)
                raise CodeGenError(f"cyclic inheritance among virtual entities: {names}")
            pending.remove(entity)
            ordered.append(entity)
            done.add(entity)
        return ordered


def generate_parser(model: Optional[Model], config: Optional[GeneratorConfig] = None) -> GeneratedParser:
    return ParserGenerator(config).generate(model)


def generate(model: Optional[Model], config: Optional[GeneratorConfig] = None) -> str:
    """Generate the Python source of a parser for *model*."""
    return generate_parser(model, config).code
