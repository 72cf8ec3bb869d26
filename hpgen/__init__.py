"""hpgen — Human Parser Generator.

Turns a structural model of a grammar into the source of a Python
module implementing a recursive-descent parser that builds typed
objects from its input.

Submodules
----------
model
    The grammar model: ``Model``, ``Entity``, ``Property`` and the closed
    ``ParseAction`` union (literal, pattern, reference, sequence,
    alternation).

reader
    Reads a model written as an S-expression file and resolves it into
    a closed ``Model``.

codegen
    The generator: action translator, entity declarations, parse
    routines, extraction table, and the assembler that joins them.

runtime
    ``ParserBase`` and the match/recover/repeat/alternate primitives
    imported by every generated parser.

errors
    Structured error codes (``HPG-XXXX``) and the exception hierarchy.

main
    CLI entry-point with subcommands: ``generate``, ``inspect``.

Usage
-----
Command-line::

    python -m hpgen generate grammar.hpg -o grammar_parser.py
    python -m hpgen inspect  grammar.hpg
    python -m hpgen --help

Programmatic::

    from hpgen.reader import read_model_file
    from hpgen.codegen import GeneratorConfig, generate

    model = read_model_file("grammar.hpg")
    source = generate(model, GeneratorConfig(emit_rule=True))

"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "model",
    "reader",
    "codegen",
    "runtime",
    "errors",
    "main",
]
