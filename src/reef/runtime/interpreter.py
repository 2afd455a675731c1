"""
Tree-walking interpreter for Reef.

Evaluates expression nodes to Values and executes statement nodes for their
effects, threading the current environment through blocks and calls.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TextIO, Union
import logging
import math
import sys

from .values import (
    Value, NIL,
    number_val, string_val, bool_val, callable_val, literal_val, values_equal,
)
from .environment import Environment
from .context import ExecutionContext
from .callables import ReefCallable, ReefFunction, NativeFunction
from .builtins import BuiltinRegistry, default_registry

from ..ast import (
    Program,
    Statement, ExpressionStatement, VarDecl, Block, IfStatement,
    WhileStatement, FunctionDecl, ReturnStatement,
    Expression, Literal, Grouping, Unary, Binary, Logical,
    Variable, Assign, Call,
)
from ..config import InterpreterConfig
from ..errors import (
    Diagnostic, ReefError, ReefRuntimeError, CompileError,
    error_type_mismatch, error_not_callable, error_arity_mismatch,
    error_recursion_limit, error_native_failure,
)
from ..tokens import Token, TokenType
from ..util import recursion_headroom


logger = logging.getLogger(__name__)


# Host frames reserved per interpreted call: one call costs about a dozen
# frames, the rest covers expressions and blocks nested inside the body.
# InterpreterConfig caps max_call_depth so this stays bounded.
_FRAMES_PER_CALL = 30


@dataclass
class ExecutionResult:
    """Result of running one unit (a file or a REPL line)."""
    success: bool
    value: Optional[Value] = None
    error: Optional[ReefError] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return self.error.diagnostic.message

    @property
    def is_syntax_error(self) -> bool:
        return isinstance(self.error, CompileError)

    @property
    def is_runtime_error(self) -> bool:
        return isinstance(self.error, ReefRuntimeError)

    def format_errors(self, show_source: bool = True) -> str:
        return "\n\n".join(d.format(show_source) for d in self.diagnostics)


class Interpreter:
    """
    Tree-walking interpreter for Reef.

    One interpreter owns one global environment for its whole lifetime; every
    unit passed to `interpret` runs against it, so declarations persist
    across REPL lines. A unit that fails keeps the effects of the statements
    that completed before the failure.
    """

    def __init__(
        self,
        config: Optional[InterpreterConfig] = None,
        output: Optional[TextIO] = None,
        registry: Optional[BuiltinRegistry] = None,
    ):
        """
        Initialize the interpreter.

        Args:
            config: Interpreter settings (defaults to InterpreterConfig())
            output: Stream written by the print() native (defaults to stdout)
            registry: Native functions to install in the global environment
        """
        self.config = config or InterpreterConfig()
        self.output = output
        self.context = ExecutionContext(max_call_depth=self.config.max_call_depth)
        (registry if registry is not None else default_registry()).install(self.globals)

    @property
    def globals(self) -> Environment:
        return self.context.globals

    @property
    def environment(self) -> Environment:
        """The environment statements currently execute in."""
        return self.context.environment

    def write(self, text: str) -> None:
        """Write program output."""
        (self.output or sys.stdout).write(text)

    def register_native(self, name: str, arity: int,
                        implementation: Callable[..., Value], doc: str = "") -> NativeFunction:
        """
        Define a host function in the global environment.

        The implementation is called as implementation(interpreter, *args)
        with exactly `arity` Values, and returns a Value (None means nil).
        """
        func = NativeFunction(name, arity, implementation, doc)
        self.globals.define(name, callable_val(func))
        logger.debug("registered native %s/%d", name, arity)
        return func

    # =========================================================================
    # Entry Points
    # =========================================================================

    def interpret(self, statements: Union[Program, Sequence[Statement]],
                  source: Optional[str] = None) -> Value:
        """
        Execute top-level statements against the global environment.

        Args:
            statements: A parsed Program or its statement list
            source: Source text, used to show the offending line in errors

        Returns:
            The value of the final statement when it is an expression
            statement, nil otherwise

        Raises:
            ReefRuntimeError: The first runtime error; later statements in
                the unit are not executed
        """
        if isinstance(statements, Program):
            statements = statements.statements
        if source is not None:
            self.context.set_source(source)

        last: Value = NIL
        current: Optional[Statement] = None
        try:
            with recursion_headroom(self.context.max_call_depth * _FRAMES_PER_CALL):
                for current in statements:
                    if isinstance(current, ExpressionStatement):
                        last = self._evaluate(current.expression)
                    else:
                        self._execute_statement(current)
                        last = NIL
        except ReefRuntimeError as e:
            self.context.reset()
            raise self.context.attach_source(e)
        except RecursionError:
            self.context.reset()
            raise self.context.attach_source(
                error_recursion_limit(self.context.max_call_depth, current.span)
            ) from None
        return last

    def execute_body(self, body: Sequence[Statement], environment: Environment) -> Value:
        """Run a function body in `environment`; return its return value or nil."""
        self._execute_block(body, environment)
        return self.context.take_return()

    def evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression in the current environment."""
        return self._evaluate(expr)

    # =========================================================================
    # Statements
    # =========================================================================

    def _execute_statement(self, stmt: Statement) -> None:
        """Execute a statement."""
        if isinstance(stmt, ExpressionStatement):
            self._evaluate(stmt.expression)
        elif isinstance(stmt, VarDecl):
            self._execute_var_decl(stmt)
        elif isinstance(stmt, Block):
            self._execute_block(
                stmt.statements,
                Environment(enclosing=self.context.environment, name="block"),
            )
        elif isinstance(stmt, IfStatement):
            self._execute_if(stmt)
        elif isinstance(stmt, WhileStatement):
            self._execute_while(stmt)
        elif isinstance(stmt, FunctionDecl):
            self._execute_function_decl(stmt)
        elif isinstance(stmt, ReturnStatement):
            self._execute_return(stmt)
        else:
            raise TypeError(f"Unknown statement type: {type(stmt).__name__}")

    def _execute_var_decl(self, stmt: VarDecl) -> None:
        """Execute a variable declaration."""
        value = NIL
        if stmt.initializer is not None:
            value = self._evaluate(stmt.initializer)
        self.context.environment.define(stmt.name.lexeme, value)

    def _execute_block(self, statements: Sequence[Statement], environment: Environment) -> None:
        """Execute statements in `environment`, restoring the previous one after."""
        with self.context.scope(environment):
            for stmt in statements:
                self._execute_statement(stmt)
                if self.context.should_return:
                    break

    def _execute_if(self, stmt: IfStatement) -> None:
        """Execute an if statement."""
        if self._evaluate(stmt.condition).is_truthy():
            self._execute_statement(stmt.then_branch)
        elif stmt.else_branch is not None:
            self._execute_statement(stmt.else_branch)

    def _execute_while(self, stmt: WhileStatement) -> None:
        """Execute a while loop."""
        while self._evaluate(stmt.condition).is_truthy():
            self._execute_statement(stmt.body)
            if self.context.should_return:
                return

    def _execute_function_decl(self, stmt: FunctionDecl) -> None:
        """Bind a closure over the current environment under the function's name."""
        environment = self.context.environment
        function = ReefFunction(stmt, environment)
        environment.define(stmt.name.lexeme, callable_val(function))

    def _execute_return(self, stmt: ReturnStatement) -> None:
        """Execute a return statement."""
        value = NIL
        if stmt.value is not None:
            value = self._evaluate(stmt.value)
        self.context.signal_return(value)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression to produce a Value."""
        if isinstance(expr, Literal):
            return literal_val(expr.value)
        elif isinstance(expr, Grouping):
            return self._evaluate(expr.expression)
        elif isinstance(expr, Unary):
            return self._eval_unary(expr)
        elif isinstance(expr, Binary):
            return self._eval_binary(expr)
        elif isinstance(expr, Logical):
            return self._eval_logical(expr)
        elif isinstance(expr, Variable):
            return self.context.environment.get(expr.name)
        elif isinstance(expr, Assign):
            value = self._evaluate(expr.value)
            self.context.environment.assign(expr.name, value)
            return value
        elif isinstance(expr, Call):
            return self._eval_call(expr)
        else:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")

    def _eval_unary(self, expr: Unary) -> Value:
        """Evaluate a unary operation."""
        operand = self._evaluate(expr.right)
        operator = expr.operator

        if operator.type == TokenType.MINUS:
            if not operand.is_number:
                raise error_type_mismatch(
                    operator, f"operand must be a number, got {operand.type_name}"
                )
            return number_val(-operand.data)
        elif operator.type == TokenType.BANG:
            return bool_val(not operand.is_truthy())
        else:
            raise TypeError(f"Unknown unary operator: {operator.type}")

    def _eval_binary(self, expr: Binary) -> Value:
        """Evaluate a binary operation. Both operands are always evaluated, left first."""
        left = self._evaluate(expr.left)
        right = self._evaluate(expr.right)
        operator = expr.operator
        op = operator.type

        # Equality is defined over every variant
        if op == TokenType.EQUAL_EQUAL:
            return bool_val(values_equal(left, right))
        if op == TokenType.BANG_EQUAL:
            return bool_val(not values_equal(left, right))

        if op == TokenType.PLUS:
            if left.is_number and right.is_number:
                return number_val(left.data + right.data)
            if left.is_string and right.is_string:
                return string_val(left.data + right.data)
            raise error_type_mismatch(
                operator,
                f"operands must be two numbers or two strings, "
                f"got {left.type_name} and {right.type_name}",
            )

        self._check_number_operands(operator, left, right)
        a, b = left.data, right.data

        if op == TokenType.MINUS:
            return number_val(a - b)
        elif op == TokenType.STAR:
            return number_val(a * b)
        elif op == TokenType.SLASH:
            return number_val(_divide(a, b))
        elif op == TokenType.GREATER:
            return bool_val(a > b)
        elif op == TokenType.GREATER_EQUAL:
            return bool_val(a >= b)
        elif op == TokenType.LESS:
            return bool_val(a < b)
        elif op == TokenType.LESS_EQUAL:
            return bool_val(a <= b)
        else:
            raise TypeError(f"Unknown binary operator: {op}")

    @staticmethod
    def _check_number_operands(operator: Token, left: Value, right: Value) -> None:
        if not (left.is_number and right.is_number):
            raise error_type_mismatch(
                operator,
                f"operands must be numbers, got {left.type_name} and {right.type_name}",
            )

    def _eval_logical(self, expr: Logical) -> Value:
        """Short-circuit and/or; the result is the operand that decided it."""
        left = self._evaluate(expr.left)

        if expr.operator.type == TokenType.OR:
            if left.is_truthy():
                return left
        elif not left.is_truthy():
            return left

        return self._evaluate(expr.right)

    def _eval_call(self, expr: Call) -> Value:
        """Evaluate a call expression."""
        callee = self._evaluate(expr.callee)
        if not callee.is_callable:
            raise error_not_callable(callee.type_name, expr.span)

        # Strictly left to right
        arguments = []
        for argument in expr.arguments:
            arguments.append(self._evaluate(argument))

        return self.call_value(callee.data, arguments, expr.paren)

    def call_value(self, function: ReefCallable, arguments: List[Value], site: Token) -> Value:
        """
        Invoke a callable after checking its arity and the call depth.

        Args:
            function: The callable to invoke
            arguments: Already-evaluated arguments
            site: Token at the call site, used for error locations
        """
        if len(arguments) != function.arity:
            raise error_arity_mismatch(function.name, function.arity, len(arguments), site.span)

        with self.context.call_frame(site.span):
            if isinstance(function, NativeFunction):
                return self._call_native(function, arguments, site)
            logger.debug("call %s depth=%d", function.name, self.context.call_depth)
            result = function.call(self, arguments)
            logger.debug("return %s depth=%d", function.name, self.context.call_depth)
            return result

    def _call_native(self, function: NativeFunction, arguments: List[Value], site: Token) -> Value:
        """Call a native function, wrapping host exceptions as runtime errors."""
        try:
            result = function.call(self, arguments)
        except (ReefRuntimeError, RecursionError):
            raise
        except Exception as e:
            raise error_native_failure(function.name, e, site.span) from e
        if not isinstance(result, Value):
            raise error_native_failure(
                function.name, TypeError(f"returned {type(result).__name__}, not a Value"), site.span
            )
        return result


def _divide(a: float, b: float) -> float:
    """IEEE division: x/0 is +-inf, 0/0 and nan/0 are nan."""
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


# Convenience functions for simple execution

def execute(
    statements: Union[Program, Sequence[Statement]],
    interpreter: Optional[Interpreter] = None,
    source: Optional[str] = None,
) -> ExecutionResult:
    """
    Execute an already-parsed unit, reporting failure in the result.

    This is a convenience wrapper around Interpreter.interpret().
    """
    interpreter = interpreter or Interpreter()
    try:
        value = interpreter.interpret(statements, source)
    except ReefRuntimeError as e:
        return ExecutionResult(success=False, error=e, diagnostics=[e.diagnostic])
    return ExecutionResult(success=True, value=value)


def run_source(
    source: str,
    interpreter: Optional[Interpreter] = None,
    filename: Optional[str] = None,
    interactive: bool = False,
) -> ExecutionResult:
    """
    High-level API to scan, parse and run Reef source in one call.

        from reef import run_source

        result = run_source('''
            fun square(x) { return x * x; }
            print(square(4));
        ''')

        if not result.success:
            print(result.format_errors())

    A unit with syntax errors is never executed; all of its errors are
    returned. Pass the same interpreter to successive calls to keep global
    declarations between them.

    Args:
        source: Reef source code
        interpreter: Interpreter to run in (a fresh one if omitted)
        filename: Optional filename for error messages
        interactive: Accept a final expression without ';' (REPL input)

    Returns:
        ExecutionResult with the last expression value or the errors
    """
    from ..parser import parse_source

    try:
        program = parse_source(source, filename, interactive)
    except CompileError as e:
        return ExecutionResult(success=False, error=e, diagnostics=e.diagnostics)

    return execute(program, interpreter, source)
