"""
Reef - a small dynamically typed scripting language.

This module provides:
- Lexer: Tokenizes Reef source code
- Parser: Builds an AST from tokens, reporting every syntax error in a unit
- Interpreter: Evaluates the AST against a persistent global environment
- Config: Interpreter settings from YAML and REEF_* environment variables

Usage:
    from reef import Interpreter, run_source

    interpreter = Interpreter()
    run_source('fun square(x) { return x * x; }', interpreter)
    result = run_source('square(12)', interpreter, interactive=True)
    print(result.value)     # 144

    # Host functions are the extension point
    from reef import number_val
    interpreter.register_native("twice", 1, lambda interp, x: number_val(x.data * 2))
"""

__version__ = "0.3.0"

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
    RESERVED_KEYWORDS,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
    parse_source,
    MAX_NESTING,
)

from .ast import (
    # Base
    AstNode,
    AstVisitor,
    # Expressions
    Expression,
    Literal,
    Grouping,
    Unary,
    Binary,
    Logical,
    Variable,
    Assign,
    Call,
    # Statements
    Statement,
    ExpressionStatement,
    VarDecl,
    Block,
    IfStatement,
    WhileStatement,
    FunctionDecl,
    ReturnStatement,
    Program,
    # Helpers
    print_ast,
)

from .errors import (
    ReefError,
    LexerError,
    ParserError,
    NestingError,
    CompileError,
    ReefRuntimeError,
    RuntimeErrorKind,
    Diagnostic,
    DiagnosticCollector,
    ErrorSeverity,
)

from .config import (
    InterpreterConfig,
    MAX_CALL_DEPTH_LIMIT,
    ConfigError,
    load_config,
)

from .runtime import (
    # Interpreter
    Interpreter,
    ExecutionResult,
    execute,
    run_source,
    # Values
    Value,
    ValueType,
    NIL,
    number_val,
    string_val,
    bool_val,
    stringify,
    # Environment and callables
    Environment,
    ReefCallable,
    NativeFunction,
    ReefFunction,
    BuiltinRegistry,
)

__all__ = [
    '__version__',

    # Tokens
    'Token',
    'TokenType',
    'SourceLocation',
    'SourceSpan',
    'KEYWORDS',
    'RESERVED_KEYWORDS',

    # Lexer
    'Lexer',
    'tokenize',

    # Parser
    'Parser',
    'parse',
    'parse_source',
    'MAX_NESTING',

    # AST nodes
    'AstNode',
    'AstVisitor',
    'Expression',
    'Literal',
    'Grouping',
    'Unary',
    'Binary',
    'Logical',
    'Variable',
    'Assign',
    'Call',
    'Statement',
    'ExpressionStatement',
    'VarDecl',
    'Block',
    'IfStatement',
    'WhileStatement',
    'FunctionDecl',
    'ReturnStatement',
    'Program',
    'print_ast',

    # Errors
    'ReefError',
    'LexerError',
    'ParserError',
    'NestingError',
    'CompileError',
    'ReefRuntimeError',
    'RuntimeErrorKind',
    'Diagnostic',
    'DiagnosticCollector',
    'ErrorSeverity',

    # Configuration
    'InterpreterConfig',
    'MAX_CALL_DEPTH_LIMIT',
    'ConfigError',
    'load_config',

    # Runtime
    'Interpreter',
    'ExecutionResult',
    'execute',
    'run_source',
    'Value',
    'ValueType',
    'NIL',
    'number_val',
    'string_val',
    'bool_val',
    'stringify',
    'Environment',
    'ReefCallable',
    'NativeFunction',
    'ReefFunction',
    'BuiltinRegistry',
]
