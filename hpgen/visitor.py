#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
hpgen/visitor.py
================

Visitor infrastructure for parse-action trees.

Provides:
- ``ActionVisitor`` — abstract base with one ``visit_*`` per action variant
- ``ActionCollector`` — generic traversal that gathers matching actions
"""

from __future__ import annotations

import abc
from typing import Any, Callable, List

from hpgen import model as M
from hpgen.errors import HpgErrorCodes, InternalError

__all__ = [
    "ActionVisitor",
    "ActionCollector",
]


class ActionVisitor(abc.ABC):
    """Abstract base class for parse-action visitors.

    ``ParseAction.accept`` routes each variant to exactly one method here.
    Anything that reaches ``generic_visit`` is not a member of the closed
    action union, which is a fault in whoever built the model.
    """

    def visit(self, action: M.ParseAction) -> Any:
        """Dispatch to the appropriate visit method."""
        return action.accept(self)

    def generic_visit(self, action: M.ParseAction) -> Any:
        raise InternalError(
            f"no translation for parse action {type(action).__name__}",
            code=HpgErrorCodes.UNKNOWN_VARIANT,
        )

    @abc.abstractmethod
    def visit_literal_match(self, action: M.LiteralMatch) -> Any: ...

    @abc.abstractmethod
    def visit_pattern_match(self, action: M.PatternMatch) -> Any: ...

    @abc.abstractmethod
    def visit_entity_reference(self, action: M.EntityReference) -> Any: ...

    @abc.abstractmethod
    def visit_sequence(self, action: M.Sequence) -> Any: ...

    @abc.abstractmethod
    def visit_alternation(self, action: M.Alternation) -> Any: ...


class ActionCollector(ActionVisitor):
    """Depth-first traversal collecting every action that satisfies *predicate*."""

    def __init__(self, predicate: Callable[[M.ParseAction], bool]) -> None:
        self.predicate = predicate
        self.found: List[M.ParseAction] = []

    def _check(self, action: M.ParseAction) -> None:
        if self.predicate(action):
            self.found.append(action)

    def visit_literal_match(self, action: M.LiteralMatch) -> None:
        self._check(action)

    def visit_pattern_match(self, action: M.PatternMatch) -> None:
        self._check(action)

    def visit_entity_reference(self, action: M.EntityReference) -> None:
        self._check(action)

    def visit_sequence(self, action: M.Sequence) -> None:
        self._check(action)
        for child in action.actions:
            self.visit(child)

    def visit_alternation(self, action: M.Alternation) -> None:
        self._check(action)
        for child in action.actions:
            self.visit(child)
