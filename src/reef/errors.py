"""
Reef exceptions and diagnostics.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E4xx: Runtime errors

Lexer and parser errors are syntax errors: a unit containing any of them is
never executed. Runtime errors abort the statement in progress and unwind to
the driver.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan, Token, TokenType


class ErrorSeverity(Enum):
    """Severity levels for diagnostics. Every diagnostic so far is an error."""
    ERROR = "error"


@dataclass
class Diagnostic:
    """A single diagnostic message."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: SourceSpan
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    @property
    def line(self) -> int:
        return self.span.start.line

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        # Header: location: severity[code]: message
        loc = f"{self.span.start}"
        parts.append(f"{loc}: {self.severity.value}[{self.code}]: {self.message}")

        # Source line with caret
        if show_source and self.source_line is not None:
            parts.append(f"  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            end_col = self.span.end.column if self.span.start.line == self.span.end.line else len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            },
            "hints": self.hints,
        }


class ReefError(Exception):
    """Base exception for Reef errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def line(self) -> int:
        return self.diagnostic.line

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexerError(ReefError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(ReefError):
    """Error during parsing (E1xx)."""
    pass


class NestingError(ParserError):
    """Input nested past the parser's depth limit (E108); ends the parse."""
    pass


class CompileError(ReefError):
    """One or more syntax errors found in a unit; nothing was executed."""

    def __init__(self, diagnostics: List[Diagnostic]):
        self.diagnostics = list(diagnostics)
        super().__init__(self.diagnostics[0])

    def __str__(self) -> str:
        return "\n\n".join(d.format() for d in self.diagnostics)


class RuntimeErrorKind(Enum):
    """Categories of runtime failure."""
    UNDEFINED_VARIABLE = "E401"
    TYPE_MISMATCH = "E402"
    NOT_CALLABLE = "E403"
    ARITY_MISMATCH = "E404"
    RECURSION_LIMIT = "E405"
    NATIVE_FAILURE = "E406"


class ReefRuntimeError(ReefError):
    """Error raised while evaluating a program (E4xx)."""

    def __init__(self, kind: RuntimeErrorKind, diagnostic: Diagnostic):
        self.kind = kind
        super().__init__(diagnostic)


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Unexpected character."""
    diag = Diagnostic(
        code="E001",
        message=f"unexpected character '{char}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    diag = Diagnostic(
        code="E002",
        message="unterminated string literal",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["string literals must be closed with a matching '\"'"],
    )
    return LexerError(diag)


def error_unterminated_comment(span: SourceSpan, source_line: str = None) -> LexerError:
    """E004: Unterminated multi-line comment."""
    diag = Diagnostic(
        code="E004",
        message="unterminated multi-line comment (expected closing */)",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_invalid_escape_sequence(seq: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E005: Invalid escape sequence in string."""
    diag = Diagnostic(
        code="E005",
        message=f"invalid escape sequence '\\{seq}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["valid escape sequences: \\n, \\t, \\r, \\\", \\\\, \\0"],
    )
    return LexerError(diag)


# --- Parser error codes ---

def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of file"
    return f"'{token.lexeme}'"


def error_unexpected_token(expected: str, token: Token,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    diag = Diagnostic(
        code="E101",
        message=f"expected {expected}, found {_describe(token)}",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of file."""
    diag = Diagnostic(
        code="E102",
        message=f"unexpected end of file, expected {expected}",
        severity=ErrorSeverity.ERROR,
        span=span,
    )
    return ParserError(diag)


def error_invalid_expression(token: Token, source_line: str = None) -> ParserError:
    """E103: Invalid expression."""
    diag = Diagnostic(
        code="E103",
        message=f"expected expression, found {_describe(token)}",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_invalid_assignment_target(span: SourceSpan, source_line: str = None) -> ParserError:
    """E104: Invalid assignment target."""
    diag = Diagnostic(
        code="E104",
        message="invalid assignment target",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["only variables can be assigned to"],
    )
    return ParserError(diag)


def error_too_many_arguments(what: str, limit: int, span: SourceSpan,
                             source_line: str = None) -> ParserError:
    """E105: Too many parameters or arguments."""
    diag = Diagnostic(
        code="E105",
        message=f"can't have more than {limit} {what}",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_return_outside_function(span: SourceSpan, source_line: str = None) -> ParserError:
    """E106: Return statement at top level."""
    diag = Diagnostic(
        code="E106",
        message="can't return from top-level code",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_reserved_keyword(token: Token, source_line: str = None) -> ParserError:
    """E107: Keyword reserved for an unsupported feature."""
    diag = Diagnostic(
        code="E107",
        message=f"'{token.lexeme}' is reserved and not supported",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        hints=["classes and methods are not part of this language core"],
    )
    return ParserError(diag)


def error_nesting_too_deep(limit: int, span: SourceSpan, source_line: str = None) -> NestingError:
    """E108: Expressions or statements nested past the parser's limit."""
    diag = Diagnostic(
        code="E108",
        message=f"nested too deeply (limit is {limit} levels)",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["split the expression using intermediate variables"],
    )
    return NestingError(diag)


# --- Runtime error codes ---

def _runtime_error(kind: RuntimeErrorKind, message: str, span: SourceSpan,
                   source_line: str = None, hints: List[str] = None) -> ReefRuntimeError:
    diag = Diagnostic(
        code=kind.value,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=hints or [],
    )
    return ReefRuntimeError(kind, diag)


def error_undefined_variable(name: Token, source_line: str = None) -> ReefRuntimeError:
    """E401: Read or assignment of an unbound name."""
    return _runtime_error(
        RuntimeErrorKind.UNDEFINED_VARIABLE,
        f"undefined variable '{name.lexeme}' (line {name.line})",
        name.span,
        source_line,
    )


def error_type_mismatch(operator: Token, message: str,
                        source_line: str = None) -> ReefRuntimeError:
    """E402: Operand types not accepted by an operator."""
    return _runtime_error(
        RuntimeErrorKind.TYPE_MISMATCH,
        f"operator '{operator.lexeme}': {message}",
        operator.span,
        source_line,
    )


def error_not_callable(type_name: str, span: SourceSpan,
                       source_line: str = None) -> ReefRuntimeError:
    """E403: Call of a value that is not a function."""
    return _runtime_error(
        RuntimeErrorKind.NOT_CALLABLE,
        f"can only call functions, got {type_name}",
        span,
        source_line,
    )


def error_arity_mismatch(name: str, expected: int, actual: int, span: SourceSpan,
                         source_line: str = None) -> ReefRuntimeError:
    """E404: Wrong number of arguments."""
    return _runtime_error(
        RuntimeErrorKind.ARITY_MISMATCH,
        f"'{name}' expected {expected} argument(s) but got {actual}",
        span,
        source_line,
    )


def error_recursion_limit(limit: int, span: SourceSpan,
                          source_line: str = None) -> ReefRuntimeError:
    """E405: Call depth exceeded."""
    return _runtime_error(
        RuntimeErrorKind.RECURSION_LIMIT,
        f"maximum call depth of {limit} exceeded",
        span,
        source_line,
        hints=["raise max_call_depth in the interpreter configuration"],
    )


def error_native_failure(name: str, exc: Exception, span: SourceSpan,
                         source_line: str = None) -> ReefRuntimeError:
    """E406: Host exception inside a native function."""
    return _runtime_error(
        RuntimeErrorKind.NATIVE_FAILURE,
        f"native function '{name}' failed: {exc}",
        span,
        source_line,
    )


class DiagnosticCollector:
    """Collects diagnostics during compilation."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1

    def add_error(self, error: ReefError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"{self._error_count} error(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
        }
