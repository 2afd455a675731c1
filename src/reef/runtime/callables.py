"""
Callable values: native (host) functions and user-defined closures.

Both variants report an arity and can be invoked with an interpreter and a
list of already-evaluated arguments. Argument count is checked by the
interpreter before `call` is reached, so implementations may assume
`len(arguments) == self.arity`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List
import logging

from .values import Value, NIL
from .environment import Environment
from ..ast import FunctionDecl

if TYPE_CHECKING:
    from .interpreter import Interpreter


logger = logging.getLogger(__name__)


class ReefCallable(ABC):
    """Anything that can appear as the callee of a call expression."""

    name: str

    @property
    @abstractmethod
    def arity(self) -> int:
        """Number of arguments the callable expects."""

    @abstractmethod
    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        """Invoke with evaluated arguments and return the result."""


@dataclass(eq=False)
class NativeFunction(ReefCallable):
    """
    A host-implemented function.

    The implementation receives the interpreter followed by one positional
    Value per declared parameter.
    """
    name: str
    native_arity: int
    implementation: Callable[..., Value]
    doc: str = ""

    @property
    def arity(self) -> int:
        return self.native_arity

    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        result = self.implementation(interpreter, *arguments)
        return NIL if result is None else result

    def __str__(self) -> str:
        return f"<native fn {self.name}>"


class ReefFunction(ReefCallable):
    """
    A user-defined function paired with the environment it was declared in.

    Each call runs the body in a fresh environment whose parent is that
    captured environment, never the caller's.
    """

    def __init__(self, declaration: FunctionDecl, closure: Environment):
        self.declaration = declaration
        self.closure = closure
        self.name = declaration.name.lexeme
        logger.debug("declared function %s/%d in %s scope",
                     self.name, self.arity, closure.name)

    @property
    def arity(self) -> int:
        return self.declaration.arity

    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        environment = Environment(enclosing=self.closure, name=f"call {self.name}")
        for param, argument in zip(self.declaration.params, arguments):
            environment.define(param.lexeme, argument)
        return interpreter.execute_body(self.declaration.body, environment)

    def __repr__(self) -> str:
        return f"ReefFunction({self.name!r}, arity={self.arity})"

    def __str__(self) -> str:
        return f"<fn {self.name}>"
