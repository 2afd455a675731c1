"""
Execution context for the Reef interpreter.

Tracks the current environment, call depth and the pending-return signal,
and keeps source text around for error messages.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from contextlib import contextmanager

from .values import Value, NIL
from .environment import Environment
from ..errors import ReefRuntimeError, error_recursion_limit
from ..tokens import SourceSpan
from ..config import DEFAULT_MAX_CALL_DEPTH


@dataclass
class ExecutionContext:
    """
    The full execution context for interpreting Reef code.

    Tracks:
    - The global environment (one per interpreter, persists across units)
    - The environment statements are currently executing in
    - Call depth against the configured limit
    - Pending return from the innermost function call
    - Source lines for error messages
    """
    globals: Environment = field(default_factory=lambda: Environment(name="global"))
    environment: Optional[Environment] = None

    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    call_depth: int = 0

    source_lines: List[str] = field(default_factory=list)

    # Control flow flags
    _should_return: bool = False
    _return_value: Value = NIL

    def __post_init__(self):
        if self.environment is None:
            self.environment = self.globals

    @contextmanager
    def scope(self, environment: Environment):
        """
        Context manager that makes `environment` current for its body.

        Usage:
            with ctx.scope(Environment(enclosing=ctx.environment, name="block")):
                # statements executed here see the new scope
                ...
        """
        previous = self.environment
        self.environment = environment
        try:
            yield environment
        finally:
            self.environment = previous

    @contextmanager
    def call_frame(self, span: SourceSpan):
        """Count one level of call depth, failing past the configured limit."""
        if self.call_depth >= self.max_call_depth:
            raise error_recursion_limit(self.max_call_depth, span)
        self.call_depth += 1
        try:
            yield
        finally:
            self.call_depth -= 1

    def signal_return(self, value: Value) -> None:
        """Signal an early return from the current function."""
        self._should_return = True
        self._return_value = value

    @property
    def should_return(self) -> bool:
        """Check if early return was signaled."""
        return self._should_return

    def take_return(self) -> Value:
        """Consume the pending return value (nil if the body fell off the end)."""
        value = self._return_value if self._should_return else NIL
        self._should_return = False
        self._return_value = NIL
        return value

    def reset(self) -> None:
        """Restore top-level state after a unit aborted with an error."""
        self.environment = self.globals
        self.call_depth = 0
        self._should_return = False
        self._return_value = NIL

    def set_source(self, source: str) -> None:
        self.source_lines = source.splitlines() if source else []

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a source line for error messages."""
        if 1 <= line_num <= len(self.source_lines):
            return self.source_lines[line_num - 1]
        return None

    def attach_source(self, error: ReefRuntimeError) -> ReefRuntimeError:
        """Fill in the offending source line if the error lacks one."""
        if error.diagnostic.source_line is None:
            error.diagnostic.source_line = self.get_source_line(error.line)
        return error
