#!/usr/bin/env python3
"""
CLI for the Reef interpreter.

Usage:
    python -m reef run FILE.reef
    python -m reef check [--json] FILE.reef
    python -m reef tokens FILE.reef
    python -m reef ast FILE.reef
    python -m reef [repl]

Exit codes:
    0   success
    1   usage, I/O or configuration problem
    65  syntax errors (nothing was executed)
    70  runtime error

Examples:
    # Run a script
    python -m reef run examples/fib.reef

    # Syntax check only, reporting every error in the file
    python -m reef check examples/fib.reef

    # Interactive session with debug logging
    python -m reef -v repl
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .errors import CompileError, DiagnosticCollector
from .lexer import tokenize
from .parser import MAX_NESTING, parse_source
from .ast import print_ast
from .runtime import Interpreter, NIL, run_source, stringify
from .util import recursion_headroom


EXIT_OK = 0
EXIT_USAGE = 1
EXIT_SYNTAX = 65
EXIT_RUNTIME = 70


def _read_source(path: Path):
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return None


def _report(diagnostics, show_source: bool) -> None:
    for diag in diagnostics:
        print(diag.format(show_source), file=sys.stderr)


def cmd_run(args, config) -> int:
    """Run a script file."""
    source_path = Path(args.file)
    source = _read_source(source_path)
    if source is None:
        return EXIT_USAGE

    interpreter = Interpreter(config)
    result = run_source(source, interpreter, filename=str(source_path))
    if result.success:
        return EXIT_OK

    _report(result.diagnostics, config.show_source)
    return EXIT_SYNTAX if result.is_syntax_error else EXIT_RUNTIME


def cmd_check(args, config) -> int:
    """Scan and parse a file without executing it."""
    source_path = Path(args.file)
    source = _read_source(source_path)
    if source is None:
        return EXIT_USAGE

    try:
        program = parse_source(source, str(source_path))
    except CompileError as e:
        collector = DiagnosticCollector(max_errors=len(e.diagnostics))
        for diag in e.diagnostics:
            collector.add(diag)
        if args.json:
            print(json.dumps(collector.to_json(), indent=2))
        else:
            print(collector.format_all(config.show_source), file=sys.stderr)
        return EXIT_SYNTAX

    if args.json:
        print(json.dumps(DiagnosticCollector().to_json(), indent=2))
    else:
        print(f"OK: {source_path.name} - {len(program.statements)} statement(s), no errors")
    return EXIT_OK


def cmd_tokens(args, config) -> int:
    """Print the token stream of a file."""
    source_path = Path(args.file)
    source = _read_source(source_path)
    if source is None:
        return EXIT_USAGE

    try:
        tokens = tokenize(source, str(source_path))
    except CompileError as e:
        _report(e.diagnostics, config.show_source)
        return EXIT_SYNTAX

    for token in tokens:
        print(f"{token.line:>4}  {token.type.name:<14} {token.lexeme!r}")
    return EXIT_OK


def cmd_ast(args, config) -> int:
    """Print the parsed AST of a file."""
    source_path = Path(args.file)
    source = _read_source(source_path)
    if source is None:
        return EXIT_USAGE

    try:
        program = parse_source(source, str(source_path))
    except CompileError as e:
        _report(e.diagnostics, config.show_source)
        return EXIT_SYNTAX

    with recursion_headroom(MAX_NESTING * 10):
        print_ast(program)
    return EXIT_OK



def repl(config, stdin=None, stdout=None) -> int:
    """
    Read-eval-print loop over one interpreter.

    Each line is a separate unit; a line that fails reports its error and
    the session continues with everything defined so far. `exit` or end of
    input ends the session.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    interpreter = Interpreter(config, output=stdout)

    while True:
        stdout.write(config.prompt)
        stdout.flush()
        line = stdin.readline()
        if not line:
            stdout.write("\n")
            break
        if line.strip() == "exit":
            break
        if not line.strip():
            continue

        result = run_source(line, interpreter, filename="<stdin>", interactive=True)
        if not result.success:
            for diag in result.diagnostics:
                stdout.write(diag.format(config.show_source) + "\n")
        elif config.echo_expressions and result.value is not None and result.value != NIL:
            stdout.write(stringify(result.value) + "\n")

    return EXIT_OK


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="reef",
        description="Reef scripting language interpreter",
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('-c', '--config', metavar='FILE',
                        help='YAML configuration file (default: ./reef.yaml if present)')
    parser.add_argument('--max-call-depth', type=int, metavar='N',
                        help='Override the maximum call depth')

    subparsers = parser.add_subparsers(dest='subcommand', help='Available commands')

    run_parser = subparsers.add_parser('run', help='Run a Reef script')
    run_parser.add_argument('file', help='Reef source file')

    check_parser = subparsers.add_parser('check', help='Check a Reef file for syntax errors')
    check_parser.add_argument('file', help='Reef source file')
    check_parser.add_argument('--json', action='store_true',
                              help='Print diagnostics as JSON on stdout')

    tokens_parser = subparsers.add_parser('tokens', help='Print the tokens of a Reef file')
    tokens_parser.add_argument('file', help='Reef source file')

    ast_parser = subparsers.add_parser('ast', help='Print the syntax tree of a Reef file')
    ast_parser.add_argument('file', help='Reef source file')

    subparsers.add_parser('repl', help='Start an interactive session (default)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config).with_overrides(max_call_depth=args.max_call_depth)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.subcommand == 'run':
        return cmd_run(args, config)
    elif args.subcommand == 'check':
        return cmd_check(args, config)
    elif args.subcommand == 'tokens':
        return cmd_tokens(args, config)
    elif args.subcommand == 'ast':
        return cmd_ast(args, config)
    else:
        return repl(config)


if __name__ == '__main__':
    sys.exit(main())
