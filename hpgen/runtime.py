"""
hpgen/runtime.py
================

Runtime support imported by every generated parser.

Generated code is plain Python that leans on a handful of primitives:

* ``consume`` / ``maybe_consume``  – match-or-fail over literal text or a
  compiled pattern, anchored at the cursor after skipping whitespace
* ``attempt``                      – recoverable block that rolls back and
  re-raises with a label naming the grammar construct
* ``maybe``                        – recoverable block that swallows failure
* ``repeat`` / ``many``            – repeat-while-succeeds
* ``alternatives``                 – ordered try-chain whose exhaustion fails
  with a supplied label

Every recoverable block restores the input cursor *and* the fields of the
result objects handed to it, so a failed pass never leaves partial
results behind.
"""

from __future__ import annotations

import logging
import re
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ParseFailure",
    "Checkpoint",
    "Alternatives",
    "ParserBase",
    "format_literal",
]


# ===================================================================== #
#  Errors                                                                #
# ===================================================================== #

class ParseFailure(Exception):
    """Input did not match the grammar.

    Carries the offset at which the failure was detected plus its
    1-based line and column.
    """

    def __init__(
        self,
        message: str,
        position: int = 0,
        line: int = 0,
        column: int = 0,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.position = position
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line:
            return f"{self.message} at line {self.line}, column {self.column}"
        return self.message


class _Chosen(Exception):
    """Internal signal: an option completed and the try-chain is done."""

    def __init__(self, chain: "Alternatives") -> None:
        super().__init__()
        self.chain = chain


# ===================================================================== #
#  Textual rendering helpers                                             #
# ===================================================================== #

def format_literal(value: Optional[str]) -> str:
    """Quoted rendering of a text value, ``null`` when absent."""
    if value is None:
        return "null"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


# ===================================================================== #
#  Result snapshots                                                      #
# ===================================================================== #

_Snapshot = Tuple[Any, Dict[str, Any]]


def _snapshot(slots: Tuple[Any, ...]) -> List[_Snapshot]:
    saved = []
    for slot in slots:
        if slot is None or not hasattr(slot, "__dict__"):
            continue
        state = {
            name: list(value) if isinstance(value, list) else value
            for name, value in vars(slot).items()
        }
        saved.append((slot, state))
    return saved


def _restore(saved: List[_Snapshot]) -> None:
    for slot, state in saved:
        fields = vars(slot)
        fields.clear()
        fields.update(state)


# ===================================================================== #
#  Recoverable blocks                                                    #
# ===================================================================== #

class Checkpoint:
    """Recoverable block.

    On ``ParseFailure`` inside the block the cursor and the given result
    slots are rolled back.  Without a *label* the failure is swallowed;
    with one it is re-raised as ``ParseFailure(label)``.
    """

    def __init__(
        self,
        parser: "ParserBase",
        slots: Tuple[Any, ...] = (),
        label: Optional[str] = None,
    ) -> None:
        self.parser = parser
        self.slots = slots
        self.label = label
        self.start = parser.pos
        self.failed = False
        self.failure: Optional[ParseFailure] = None
        self._saved: List[_Snapshot] = []

    def __enter__(self) -> "Checkpoint":
        self.start = self.parser.pos
        self._saved = _snapshot(self.slots)
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is None or not issubclass(exc_type, ParseFailure):
            return False
        self.rollback()
        self.failed = True
        self.failure = exc
        if self.label is not None:
            raise self.parser.failure(self.label) from exc
        return True

    def rollback(self) -> None:
        """Return the cursor and slots to their state on entry."""
        self.parser.pos = self.start
        _restore(self._saved)

    @property
    def progressed(self) -> bool:
        return self.parser.pos != self.start


class _Option(Checkpoint):
    """One branch of a try-chain."""

    def __init__(self, chain: "Alternatives") -> None:
        super().__init__(chain.parser, chain.slots)
        self.chain = chain

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is None:
            raise _Chosen(self.chain)
        suppressed = super().__exit__(exc_type, exc, tb)
        if suppressed:
            self.chain.failures.append(self.failure)
        return suppressed


class Alternatives:
    """Ordered try-chain.

    Options run in the order they are written.  The first option that
    completes leaves the chain at once, so later options and their side
    effects never run.  If every option fails, the chain fails with its
    label.
    """

    def __init__(self, parser: "ParserBase", label: str, slots: Tuple[Any, ...] = ()) -> None:
        self.parser = parser
        self.label = label
        self.slots = slots
        self.failures: List[Optional[ParseFailure]] = []

    def __enter__(self) -> "Alternatives":
        return self

    def option(self) -> _Option:
        return _Option(self)

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if isinstance(exc, _Chosen) and exc.chain is self:
            return True
        if exc_type is not None:
            return False
        raise self.parser.failure(self.label)


# ===================================================================== #
#  ParserBase                                                            #
# ===================================================================== #

Matchable = Union[str, "re.Pattern[str]"]


class ParserBase:
    """Base class of every generated ``Parser``.

    Subclasses provide one ``parse_<entity>`` routine per entity and bind
    the root routine as ``parse_root``.  ``WHITESPACE`` is skipped before
    every match.
    """

    WHITESPACE: str = r"\s*"

    def __init__(self) -> None:
        self._whitespace = re.compile(self.WHITESPACE)
        self.source = ""
        self.pos = 0

    # -- entry point -------------------------------------------------

    def parse(self, source: str, complete: bool = True) -> Any:
        """Parse *source* from the root entity.

        With *complete* set, trailing input other than whitespace is a
        failure.
        """
        self.load(source)
        result = self.parse_root()
        if complete:
            self.skip_whitespace()
            if self.pos < len(self.source):
                raise self.failure("Unexpected trailing input")
        return result

    def parse_root(self) -> Any:
        raise NotImplementedError("generated parsers bind parse_root")

    def load(self, source: str) -> "ParserBase":
        self.source = source
        self.pos = 0
        return self

    # -- diagnostics -------------------------------------------------

    def location(self, position: Optional[int] = None) -> Tuple[int, int]:
        """1-based (line, column) of *position* (default: the cursor)."""
        if position is None:
            position = self.pos
        line = self.source.count("\n", 0, position) + 1
        column = position - (self.source.rfind("\n", 0, position) + 1) + 1
        return line, column

    def failure(self, message: str) -> ParseFailure:
        line, column = self.location()
        return ParseFailure(message, self.pos, line, column)

    def fail(self, message: str) -> None:
        raise self.failure(message)

    def log(self, message: str) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            line, column = self.location()
            logger.debug("%s @ %d:%d", message, line, column)

    # -- match-or-fail -----------------------------------------------

    def skip_whitespace(self) -> None:
        match = self._whitespace.match(self.source, self.pos)
        if match is not None:
            self.pos = match.end()

    def consume(self, expected: Matchable) -> str:
        """Match literal text or a compiled pattern at the cursor.

        Returns the matched text; for a pattern with groups, the first
        group.
        """
        self.skip_whitespace()
        if isinstance(expected, str):
            if not self.source.startswith(expected, self.pos):
                raise self.failure(f"Expected {format_literal(expected)}")
            self.pos += len(expected)
            return expected
        match = expected.match(self.source, self.pos)
        if match is None:
            raise self.failure(f"Expected match for {format_literal(expected.pattern)}")
        self.pos = match.end()
        return match.group(1) if expected.groups else match.group(0)

    def maybe_consume(self, expected: Matchable) -> Optional[str]:
        """Tolerant ``consume``: ``None`` instead of failing."""
        with self.maybe():
            return self.consume(expected)
        return None

    # -- recoverable blocks ------------------------------------------

    def attempt(self, label: str, *slots: Any) -> Checkpoint:
        return Checkpoint(self, slots, label=label)

    def maybe(self, *slots: Any) -> Checkpoint:
        return Checkpoint(self, slots)

    # -- repetition --------------------------------------------------

    def repeat(self, *slots: Any) -> Iterator[Checkpoint]:
        """Yield one checkpoint per pass until a pass fails or stalls.

        A failing pass is rolled back entirely, and so is a pass that
        consumed nothing; zero passes is a valid outcome.
        """
        while True:
            checkpoint = Checkpoint(self, slots)
            yield checkpoint
            if checkpoint.failed:
                return
            if not checkpoint.progressed:
                checkpoint.rollback()
                return

    def many(self, step: Callable[[], Any], *slots: Any) -> List[Any]:
        """Collect the results of *step* for as long as it succeeds."""
        results: List[Any] = []
        for checkpoint in self.repeat(*slots):
            with checkpoint:
                result = step()
            if checkpoint.progressed:
                results.append(result)
        return results

    # -- alternation -------------------------------------------------

    def alternatives(self, label: str, *slots: Any) -> Alternatives:
        return Alternatives(self, label, slots)
