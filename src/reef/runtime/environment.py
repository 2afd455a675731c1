"""
Lexical environments for the Reef interpreter.

Environments form a chain via `enclosing`. Reads and assignments walk the
chain outward; declarations only ever touch the innermost scope. A closure
keeps a reference to the environment it was declared in, so that scope
outlives the block or call that created it for as long as the closure does.
"""

from typing import Dict, Iterator, Optional

from .values import Value
from ..errors import error_undefined_variable
from ..tokens import Token


class Environment:
    """
    A single scope containing variable bindings.

    Usage:
        globals_ = Environment(name="global")
        block = Environment(enclosing=globals_, name="block")
        block.define("x", number_val(1))
    """

    def __init__(self, enclosing: Optional["Environment"] = None, name: str = "anonymous"):
        self.values: Dict[str, Value] = {}
        self.enclosing = enclosing
        self.name = name  # For debugging

    def __repr__(self) -> str:
        return f"<Environment {self.name} depth={self.depth} names={sorted(self.values)}>"

    @property
    def depth(self) -> int:
        """Number of enclosing scopes (0 for the global scope)."""
        depth = 0
        env = self.enclosing
        while env is not None:
            depth += 1
            env = env.enclosing
        return depth

    def chain(self) -> Iterator["Environment"]:
        """Iterate from this scope outward to the global scope."""
        env: Optional[Environment] = self
        while env is not None:
            yield env
            env = env.enclosing

    def define(self, name: str, value: Value) -> None:
        """Bind a name in this scope only. Redefinition overwrites."""
        self.values[name] = value

    def get(self, name: Token) -> Value:
        """
        Look up a name in this scope or enclosing scopes.

        Raises:
            ReefRuntimeError: UNDEFINED_VARIABLE if no scope binds the name
        """
        for env in self.chain():
            if name.lexeme in env.values:
                return env.values[name.lexeme]
        raise error_undefined_variable(name)

    def assign(self, name: Token, value: Value) -> None:
        """
        Rebind an existing name in the nearest scope that defines it.

        Never creates a binding: an unbound name is an error.

        Raises:
            ReefRuntimeError: UNDEFINED_VARIABLE if no scope binds the name
        """
        for env in self.chain():
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
        raise error_undefined_variable(name)

    def contains(self, name: str) -> bool:
        """Check if a name is bound in this scope or enclosing scopes."""
        return any(name in env.values for env in self.chain())

    def lookup(self, name: str) -> Optional[Value]:
        """Look up a name by string, returning None if unbound."""
        for env in self.chain():
            if name in env.values:
                return env.values[name]
        return None
