"""
Reef runtime - tree-walking interpreter.

This module provides:
- Interpreter: Executes parsed Reef programs
- Value: Tagged runtime values and their display forms
- Environment: Lexically chained name bindings
- ExecutionContext: Current scope, call depth and pending return
- BuiltinRegistry: Native functions installed into the global scope
"""

from .values import (
    Value,
    ValueType,
    NIL,
    TRUE,
    FALSE,
    number_val,
    string_val,
    bool_val,
    callable_val,
    literal_val,
    values_equal,
    format_number,
    stringify,
)

from .environment import (
    Environment,
)

from .callables import (
    ReefCallable,
    NativeFunction,
    ReefFunction,
)

from .context import (
    ExecutionContext,
)

from .builtins import (
    BuiltinRegistry,
    default_registry,
)

from .interpreter import (
    Interpreter,
    ExecutionResult,
    execute,
    run_source,
)

__all__ = [
    # Values
    'Value',
    'ValueType',
    'NIL',
    'TRUE',
    'FALSE',
    'number_val',
    'string_val',
    'bool_val',
    'callable_val',
    'literal_val',
    'values_equal',
    'format_number',
    'stringify',

    # Environment
    'Environment',

    # Callables
    'ReefCallable',
    'NativeFunction',
    'ReefFunction',

    # Context
    'ExecutionContext',

    # Builtins
    'BuiltinRegistry',
    'default_registry',

    # Interpreter
    'Interpreter',
    'ExecutionResult',
    'execute',
    'run_source',
]
