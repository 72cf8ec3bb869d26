#!/usr/bin/env python3
"""hpgen/main.py — CLI entry-point for the Human Parser Generator.

Usage examples
--------------
    # Generate a parser module from a model file
    python -m hpgen generate grammar.hpg -o grammar_parser.py

    # Same, with the info banner and rule annotations
    python -m hpgen generate grammar.hpg -o grammar_parser.py --info --rule

    # Summarise a model (debugging aid)
    python -m hpgen inspect grammar.hpg --format json

    # Show version and exit
    python -m hpgen --version

Exit codes
----------
    0   Success.
    1   The model could not be read or a parser could not be generated.
    2   Infrastructure failure (bad file, unexpected exception, etc.).

The module doubles as ``python -m hpgen`` via the companion
``hpgen/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, TextIO

from hpgen import __version__
from hpgen.codegen import GeneratorConfig, generate_parser
from hpgen.errors import HpgError
from hpgen.model import Entity, Model
from hpgen.reader import read_model_file

_log = logging.getLogger("hpgen")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``hpgen`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("hpgen")
    root.setLevel(level)
    # one handler, however often main() runs in-process
    root.handlers = [handler]


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _report(error: HpgError, fmt: str, stream: TextIO) -> None:
    if fmt == "json":
        stream.write(json.dumps(error.to_json(), indent=2) + "\n")
    else:
        stream.write(error.to_gcc_format() + "\n")


def _load(path: Path, fmt: str) -> Optional[Model]:
    try:
        return read_model_file(path)
    except HpgError as exc:
        _report(exc, fmt, sys.stderr)
        return None


# ===========================================================================
# Subcommands
# ===========================================================================

def cmd_generate(args: argparse.Namespace) -> int:
    """Read a model file and write the generated parser module."""
    model_path = _resolve_path(args.model, "model file")
    model = _load(model_path, args.diagnostics)
    if model is None:
        return EXIT_ERROR

    config = GeneratorConfig(
        emit_info=args.info,
        emit_rule=args.rule,
        sources=[model_path.name] if args.info else [],
        runtime_module=args.runtime_module,
        parser_class=args.parser_class,
    )
    for warning in config.validate():
        _log.warning("GeneratorConfig: %s", warning)

    try:
        generated = generate_parser(model, config)
    except HpgError as exc:
        _report(exc, args.diagnostics, sys.stderr)
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        out.write(generated.code)
    finally:
        if out is not sys.stdout:
            out.close()
    _log.info("wrote parser for %s: %s", model_path.name, generated.summary())
    return EXIT_OK


def _describe_entity(entity: Entity) -> Dict[str, Any]:
    return {
        "name": entity.name,
        "virtual": entity.is_virtual,
        "supers": [s.name for s in entity.supers],
        "properties": [
            {
                "name": p.name,
                "type": p.type.name if p.type is not None else p.value_kind.name.lower(),
                "plural": p.is_plural,
                "plural_parent": p.has_plural_parent,
            }
            for p in entity.properties
        ],
        "action": repr(entity.parse_action) if entity.parse_action is not None else None,
        "rule": str(entity.rule) if entity.rule is not None else None,
    }


def cmd_inspect(args: argparse.Namespace) -> int:
    """Read a model file and print its entities."""
    model_path = _resolve_path(args.model, "model file")
    model = _load(model_path, args.diagnostics)
    if model is None:
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        if args.format == "json":
            payload = {
                "root": model.root.name if model.root is not None else None,
                "summary": model.summary(),
                "entities": [_describe_entity(e) for e in model],
            }
            out.write(json.dumps(payload, indent=2) + "\n")
        else:
            root = model.root.name if model.root is not None else "-"
            out.write(f"model {model_path.name} (root {root})\n")
            for entity in model:
                flags = " [virtual]" if entity.is_virtual else ""
                out.write(f"  {entity.name}{flags}\n")
                for prop in entity.properties:
                    out.write(f"    {prop!r}\n")
                if entity.parse_action is not None:
                    out.write(f"    parse: {entity.parse_action!r}\n")
            counts = ", ".join(f"{v} {k}" for k, v in model.summary().items())
            out.write(f"\n{counts}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser construction
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="hpgen",
        description=(
            "hpgen — Human Parser Generator.\n\n"
            "Turns a grammar model into a recursive-descent parser module\n"
            "that builds typed objects from its input."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              hpgen generate grammar.hpg -o grammar_parser.py
              hpgen generate grammar.hpg --info --rule
              hpgen inspect grammar.hpg --format json
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "model",
            metavar="MODEL",
            help="Model file (S-expression).",
        )
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )
        p.add_argument(
            "--diagnostics",
            choices=("gcc", "json"),
            default="gcc",
            help="Format of error reports on stderr (default: gcc).",
        )

    # --- generate ----------------------------------------------------------
    p_generate = subparsers.add_parser(
        "generate",
        help="Generate a parser module from a model.",
        description="Generate a Python parser module from a grammar model.",
    )
    _add_common_args(p_generate)
    p_generate.add_argument(
        "--info",
        action="store_true",
        help="Prefix the module with a DO-NOT-EDIT banner (timestamp, sources).",
    )
    p_generate.add_argument(
        "--rule",
        action="store_true",
        help="Annotate classes and routines with their grammar rule.",
    )
    p_generate.add_argument(
        "--parser-class",
        default="Parser",
        metavar="NAME",
        help="Name of the generated parser class (default: Parser).",
    )
    p_generate.add_argument(
        "--runtime-module",
        default="hpgen.runtime",
        metavar="MODULE",
        help="Module the generated code imports its runtime from.",
    )
    p_generate.set_defaults(func=cmd_generate)

    # --- inspect -----------------------------------------------------------
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Summarise a model.",
        description="Read a model and print its entities and parse actions.",
    )
    _add_common_args(p_inspect)
    p_inspect.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format (default: text).",
    )
    p_inspect.set_defaults(func=cmd_inspect)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the hpgen CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
