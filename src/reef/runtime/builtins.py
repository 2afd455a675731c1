"""
Built-in native functions for the Reef interpreter.

Registering a native function is the only extension point for built-in
behavior: embedders add host functions to the global environment before
running code. The default registry holds clock, print and str.
"""

from typing import Callable, Dict, Iterator, List, Optional
import time

from .values import Value, NIL, number_val, string_val, callable_val, stringify
from .callables import NativeFunction


class BuiltinRegistry:
    """
    Registry of native functions, keyed by name.

    Usage:
        registry = BuiltinRegistry()
        registry.register("twice", 1, lambda interp, x: number_val(x.data * 2))
        registry.install(interpreter.globals)
    """

    def __init__(self, include_defaults: bool = True):
        self._functions: Dict[str, NativeFunction] = {}
        if include_defaults:
            self._register_all()

    def __iter__(self) -> Iterator[NativeFunction]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def get_function(self, name: str) -> Optional[NativeFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def names(self) -> List[str]:
        return sorted(self._functions)

    def register(self, name: str, arity: int, implementation: Callable[..., Value],
                 doc: str = "") -> NativeFunction:
        """Register a function, replacing any existing one with the same name."""
        if arity < 0:
            raise ValueError(f"arity must be non-negative, got {arity}")
        func = NativeFunction(name, arity, implementation, doc)
        self._functions[name] = func
        return func

    def install(self, environment) -> None:
        """Define every registered function in `environment`."""
        for func in self._functions.values():
            environment.define(func.name, callable_val(func))

    def _register_all(self) -> None:
        """Register all default native functions."""

        def _clock(interpreter) -> Value:
            return number_val(time.time())

        def _print(interpreter, value: Value) -> Value:
            interpreter.write(stringify(value) + "\n")
            return NIL

        def _str(interpreter, value: Value) -> Value:
            return string_val(stringify(value))

        self.register("clock", 0, _clock, "Seconds since the epoch as a number.")
        self.register("print", 1, _print, "Write a value's display form and a newline.")
        self.register("str", 1, _str, "Display form of a value as a string.")


def default_registry() -> BuiltinRegistry:
    """A fresh registry holding the default native functions."""
    return BuiltinRegistry()
