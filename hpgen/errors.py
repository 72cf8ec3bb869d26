# hpgen/errors.py
"""
Error Types for the Human Parser Generator

This module provides the error handling infrastructure for the hpgen
pipeline: reading a grammar model, resolving it, and emitting parser code.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  HpgError (base)                                                            │
│  ├── ModelSyntaxError  - Malformed model file (S-expression shape)          │
│  ├── ModelError        - Dangling references, broken model invariants       │
│  ├── CodeGenError      - Emission failures                                  │
│  └── InternalError     - Generator faults (should never happen)             │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code following the pattern HPG-XXXX where XXXX is
a 4-digit number in ranges:
  - 1000-1999: Model syntax errors
  - 2000-2999: Model resolution errors
  - 4000-4999: Code generation errors
  - 9000-9999: Internal generator errors

Failures of the *generated* parser are not reported here; they are
``hpgen.runtime.ParseFailure`` instances raised while parsing input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto, unique
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase in which an error was detected."""

    READING = auto()
    RESOLUTION = auto()
    GENERATION = auto()
    INTERNAL = auto()


class ErrorCode:
    """
    Structured error code of the form ``HPG-NNNN``.

    Codes compare equal to their string form, so tests and callers can
    write ``err.code == "HPG-2001"``.
    """

    __slots__ = ("prefix", "number", "phase", "summary")

    def __init__(
        self,
        number: int,
        phase: ErrorPhase,
        summary: str = "",
        prefix: str = "HPG",
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.summary = summary

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class HpgErrorCodes:
    """Predefined error codes."""

    # Model syntax (1000-1999)
    MALFORMED_SEXP = ErrorCode(1001, ErrorPhase.READING, "malformed S-expression")
    UNEXPECTED_FORM = ErrorCode(1002, ErrorPhase.READING, "unexpected form")
    UNKNOWN_ACTION = ErrorCode(1003, ErrorPhase.READING, "unknown parse action")
    UNKNOWN_CLAUSE = ErrorCode(1004, ErrorPhase.READING, "unknown entity clause")

    # Model resolution (2000-2999)
    UNDEFINED_ENTITY = ErrorCode(2001, ErrorPhase.RESOLUTION, "undefined entity")
    UNDEFINED_PROPERTY = ErrorCode(2002, ErrorPhase.RESOLUTION, "undefined property")
    DUPLICATE_ENTITY = ErrorCode(2003, ErrorPhase.RESOLUTION, "duplicate entity")
    DUPLICATE_PROPERTY = ErrorCode(2004, ErrorPhase.RESOLUTION, "duplicate property")
    PATTERN_NOT_VIRTUAL = ErrorCode(2005, ErrorPhase.RESOLUTION, "pattern entity is not virtual")
    INVALID_PATTERN = ErrorCode(2006, ErrorPhase.RESOLUTION, "invalid regular expression")
    EMPTY_MODEL = ErrorCode(2007, ErrorPhase.RESOLUTION, "model has no entities")
    INLINE_PATTERN = ErrorCode(2008, ErrorPhase.RESOLUTION, "pattern used below an entity root")

    # Generation (4000-4999)
    GENERATION_FAILED = ErrorCode(4001, ErrorPhase.GENERATION, "generation failed")
    NAME_CLASH = ErrorCode(4002, ErrorPhase.GENERATION, "generated name clash")

    # Internal (9000-9999)
    INTERNAL_ERROR = ErrorCode(9001, ErrorPhase.INTERNAL, "internal generator error")
    UNKNOWN_VARIANT = ErrorCode(9002, ErrorPhase.INTERNAL, "unrecognised action variant")
    IRRECONCILABLE_BINDING = ErrorCode(9003, ErrorPhase.INTERNAL, "irreconcilable property binding")


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE SPANS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """A location in a model file; all fields optional."""

    file: str = "<model>"
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line:
            return f"{self.file}:{self.line}:{self.column}"
        return self.file


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class HpgError(Exception):
    """
    Base exception for all generator-side errors.

    Carries a structured code and an optional span so the CLI can print
    GCC-style diagnostics.
    """

    default_code: ErrorCode = HpgErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        hint: str = "",
        notes: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.span = span or SourceSpan()
        self.hint = hint
        self.notes = list(notes or [])

    def add_note(self, note: str) -> "HpgError":
        """Add a note to this error."""
        self.notes.append(note)
        return self

    def with_hint(self, hint: str) -> "HpgError":
        self.hint = hint
        return self

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        lines = [f"{self.span}: error: {self.message} [{self.code}]"]
        for note in self.notes:
            lines.append(f"{self.span}: note: {note}")
        if self.hint:
            lines.append(f"  hint: {self.hint}")
        return "\n".join(lines)

    def to_json(self) -> Dict[str, Any]:
        return {
            "code": str(self.code),
            "phase": self.code.phase.name.lower(),
            "message": self.message,
            "location": str(self.span),
            "hint": self.hint,
            "notes": list(self.notes),
        }

    def __str__(self) -> str:
        return self.to_gcc_format()


class ModelSyntaxError(HpgError):
    """The model file is not a well-formed model description."""

    default_code = HpgErrorCodes.UNEXPECTED_FORM


class ModelError(HpgError):
    """The model is well-formed but not closed or violates an invariant."""

    default_code = HpgErrorCodes.UNDEFINED_ENTITY


class CodeGenError(HpgError):
    """Emission failed for a reason attributable to the input model."""

    default_code = HpgErrorCodes.GENERATION_FAILED


class InternalError(HpgError):
    """
    A defect in the model builder or the generator itself.

    Raised immediately and never recovered from: emitting wrong parser
    code silently is worse than stopping.
    """

    default_code = HpgErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        hint: str = "",
        notes: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            f"internal generator error: {message}",
            code=code,
            span=span,
            hint=hint or "this indicates a bug in the model builder or the generator",
            notes=notes,
        )


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "HpgErrorCodes",
    "SourceSpan",
    "HpgError",
    "ModelSyntaxError",
    "ModelError",
    "CodeGenError",
    "InternalError",
]
