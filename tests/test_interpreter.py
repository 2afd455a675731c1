"""
Tests for the Reef interpreter: end-to-end evaluation of source programs.
"""

import pytest
import io
import textwrap

from reef import (
    Interpreter, InterpreterConfig, ExecutionResult, run_source, execute,
    tokenize, parse, number_val, string_val, NIL, RuntimeErrorKind,
    ReefRuntimeError, CompileError,
)


def run(source: str, interpreter: Interpreter = None, **kwargs):
    """Run dedented source; return (result, printed lines)."""
    out = io.StringIO()
    if interpreter is None:
        interpreter = Interpreter(output=out, **kwargs)
    else:
        interpreter.output = out
    result = run_source(textwrap.dedent(source), interpreter)
    return result, out.getvalue().splitlines()


def output_of(source: str, **kwargs):
    """Run source that must succeed and return its printed lines."""
    result, lines = run(source, **kwargs)
    assert result.success, result.format_errors()
    return lines


def runtime_error(source: str, **kwargs) -> ExecutionResult:
    result, _ = run(source, **kwargs)
    assert not result.success
    assert result.is_runtime_error
    return result


class TestArithmetic:
    """Test numeric and string operators."""

    def test_precedence(self):
        """Test precedence through printed results."""
        assert output_of("print(1 + 2 * 3);") == ["7"]
        assert output_of("print((1 + 2) * 3);") == ["9"]

    def test_fractional_result(self):
        """Division is floating point."""
        assert output_of("print(5 / 2);") == ["2.5"]

    def test_unary_minus(self):
        """Test negation of a grouped expression."""
        assert output_of("print(-(3 - 5));") == ["2"]

    def test_string_concatenation(self):
        """+ joins two strings."""
        assert output_of('print("reef" + "er");') == ["reefer"]

    def test_comparisons(self):
        """Test the four ordering operators."""
        assert output_of("""
            print(1 < 2);
            print(2 <= 2);
            print(3 > 4);
            print(4 >= 5);
        """) == ["true", "true", "false", "false"]

    def test_not(self):
        """! uses truthiness."""
        assert output_of("print(!nil); print(!0);") == ["true", "false"]

    def test_operands_evaluated_left_to_right(self):
        """The left operand's side effects come first."""
        assert output_of("""
            fun trace(label, v) { print(label); return v; }
            trace("left", 1) + trace("right", 2);
        """) == ["left", "right"]


class TestDivisionByZero:
    """Division by zero yields IEEE values instead of an error."""

    def test_positive_infinity(self):
        """Test 1 / 0."""
        assert output_of("print(1 / 0);") == ["inf"]

    def test_negative_infinity(self):
        """Test -1 / 0."""
        assert output_of("print(-1 / 0);") == ["-inf"]

    def test_negative_zero_divisor(self):
        """The sign of a zero divisor counts."""
        assert output_of("print(1 / -0);") == ["-inf"]

    def test_zero_over_zero(self):
        """Test 0 / 0."""
        assert output_of("print(0 / 0);") == ["nan"]

    def test_nan_is_not_equal_to_itself(self):
        """A nan variable is not equal to itself."""
        assert output_of("var n = 0 / 0; print(n == n);") == ["false"]


class TestEquality:
    """Test == and != across variants."""

    def test_same_variant(self):
        """Test equal values of each variant."""
        assert output_of("""
            print(1 == 1);
            print("a" == "a");
            print(nil == nil);
            print(true != false);
        """) == ["true", "true", "true", "true"]

    def test_cross_variant_is_false(self):
        """Values of different variants are never equal."""
        assert output_of("""
            print(true == 1);
            print(0 == false);
            print(nil == false);
            print("1" == 1);
        """) == ["false", "false", "false", "false"]

    def test_functions_compare_by_identity(self):
        """A function equals only itself."""
        assert output_of("""
            fun f() {}
            fun g() {}
            var h = f;
            print(f == h);
            print(f == g);
        """) == ["true", "false"]


class TestTypeErrors:
    """Test operator type checking."""

    def test_add_number_and_string(self):
        """+ needs two numbers or two strings."""
        result = runtime_error('print(1 + "a");')
        assert result.error.kind == RuntimeErrorKind.TYPE_MISMATCH
        assert "number and string" in result.error_message

    def test_negate_string(self):
        """Unary minus needs a number."""
        result = runtime_error('-"a";')
        assert result.error.kind == RuntimeErrorKind.TYPE_MISMATCH
        assert "operand must be a number" in result.error_message

    def test_compare_strings(self):
        """Ordering operators need numbers."""
        result = runtime_error('"a" < "b";')
        assert result.error.kind == RuntimeErrorKind.TYPE_MISMATCH

    def test_error_reports_line_and_source(self):
        """The diagnostic points at the failing line."""
        result = runtime_error("""
            var a = 1;
            var b = a * nil;
        """)
        diag = result.diagnostics[0]
        assert diag.code == "E402"
        assert diag.line == 3
        assert diag.source_line.strip() == "var b = a * nil;"


class TestVariables:
    """Test declaration, assignment and scoping."""

    def test_uninitialized_is_nil(self):
        """A declaration without initializer holds nil."""
        assert output_of("var x; print(x);") == ["nil"]

    def test_assignment_is_expression(self):
        """Assignment yields the assigned value."""
        assert output_of("var a; var b; a = b = 4; print(a + b);") == ["8"]

    def test_block_shadowing(self):
        """A block variable hides the global until the block ends."""
        assert output_of("""
            var a = "global";
            {
                var a = "inner";
                print(a);
            }
            print(a);
        """) == ["inner", "global"]

    def test_assign_outer_from_block(self):
        """Assignment inside a block updates the outer variable."""
        assert output_of("""
            var a = 1;
            { a = 2; }
            print(a);
        """) == ["2"]

    def test_block_variables_do_not_leak(self):
        """Block variables are gone after the block."""
        result = runtime_error("{ var hidden = 1; } print(hidden);")
        assert result.error.kind == RuntimeErrorKind.UNDEFINED_VARIABLE

    def test_undefined_variable_message(self):
        """The error names the variable and its line."""
        result = runtime_error("print(y);")
        assert result.error.kind == RuntimeErrorKind.UNDEFINED_VARIABLE
        assert "'y'" in result.error_message
        assert "line 1" in result.error_message

    def test_assign_undefined_fails(self):
        """Assignment never creates a global."""
        interp = Interpreter(output=io.StringIO())
        result, _ = run("y = 1;", interp)
        assert result.error.kind == RuntimeErrorKind.UNDEFINED_VARIABLE
        assert not interp.globals.contains("y")

    def test_redefinition_allowed(self):
        """var may redeclare an existing global."""
        assert output_of("var a = 1; var a = a + 1; print(a);") == ["2"]


class TestControlFlow:
    """Test if, while, for and logical operators."""

    def test_if_else(self):
        """Test branches and truthiness of nil and 0."""
        assert output_of("""
            if (1 > 2) print("yes"); else print("no");
            if (nil) print("nil is truthy");
            if (0) print("zero is truthy");
        """) == ["no", "zero is truthy"]

    def test_while(self):
        """Test a counting loop."""
        assert output_of("""
            var i = 0;
            while (i < 3) {
                print(i);
                i = i + 1;
            }
        """) == ["0", "1", "2"]

    def test_for(self):
        """Test a desugared for loop."""
        assert output_of("""
            for (var i = 0; i < 3; i = i + 1) print(i * 10);
        """) == ["0", "10", "20"]

    def test_for_variable_scoped_to_loop(self):
        """The loop variable is not visible after the loop."""
        result = runtime_error("for (var i = 0; i < 1; i = i + 1) {} print(i);")
        assert result.error.kind == RuntimeErrorKind.UNDEFINED_VARIABLE

    def test_logical_returns_deciding_operand(self):
        """and/or return an operand, not a boolean."""
        assert output_of("""
            print(nil or "fallback");
            print(1 and 2);
            print(false and 2);
            print("first" or "second");
        """) == ["fallback", "2", "false", "first"]

    def test_short_circuit_skips_right(self):
        """The right operand is not evaluated, so the undefined name is never read."""
        assert output_of("""
            print(false and undefined_name);
            print(true or undefined_call());
        """) == ["false", "true"]


class TestFunctions:
    """Test declarations, calls, returns and closures."""

    def test_call_and_return(self):
        """Test a call with two arguments."""
        assert output_of("""
            fun add(a, b) { return a + b; }
            print(add(2, 3));
        """) == ["5"]

    def test_implicit_nil_return(self):
        """A body without return yields nil."""
        assert output_of("fun f() { 1; } print(f());") == ["nil"]

    def test_bare_return(self):
        """return; yields nil and skips the rest of the body."""
        assert output_of('fun f() { return; print("unreachable"); } print(f());') == ["nil"]

    def test_return_from_nested_loop(self):
        """return leaves every enclosing loop."""
        assert output_of("""
            fun find() {
                var i = 0;
                while (true) {
                    for (var j = 0; j < 10; j = j + 1) {
                        if (i * j == 6) return i + j;
                    }
                    i = i + 1;
                }
            }
            print(find());
        """) == ["7"]

    def test_return_does_not_leak_to_caller(self):
        """A callee's return does not end the caller."""
        assert output_of("""
            fun inner() { return 1; }
            fun outer() {
                inner();
                print("after inner");
                return 2;
            }
            print(outer());
        """) == ["after inner", "2"]

    def test_recursion(self):
        """Test a recursive factorial."""
        assert output_of("""
            fun fact(n) {
                if (n <= 1) return 1;
                return n * fact(n - 1);
            }
            print(fact(10));
        """) == ["3628800"]

    def test_fibonacci(self):
        """Test doubly recursive calls."""
        assert output_of("""
            fun fib(n) {
                if (n < 2) return n;
                return fib(n - 2) + fib(n - 1);
            }
            print(fib(15));
        """) == ["610"]

    def test_functions_are_values(self):
        """Functions can be passed, returned and printed."""
        assert output_of("""
            fun twice(f, x) { return f(f(x)); }
            fun inc(x) { return x + 1; }
            print(twice(inc, 5));
            print(inc);
            print(clock);
        """) == ["7", "<fn inc>", "<native fn clock>"]

    def test_closure_counter(self):
        """Each call of makeCounter captures its own environment."""
        assert output_of("""
            fun makeCounter() {
                var i = 0;
                fun count() {
                    i = i + 1;
                    return i;
                }
                return count;
            }
            var c = makeCounter();
            print(c());
            print(c());
            var d = makeCounter();
            print(d());
            print(c());
        """) == ["1", "2", "1", "3"]

    def test_closure_uses_defining_scope_not_caller(self):
        """Free variables resolve lexically."""
        assert output_of("""
            var x = "global";
            fun show() { print(x); }
            fun caller() {
                var x = "local";
                show();
            }
            caller();
        """) == ["global"]

    def test_closure_sees_later_assignment(self):
        """Closures capture variables, not values."""
        assert output_of("""
            var x = 1;
            fun get() { return x; }
            x = 2;
            print(get());
        """) == ["2"]

    def test_call_non_callable(self):
        """Calling a string is NOT_CALLABLE."""
        result = runtime_error('"text"();')
        assert result.error.kind == RuntimeErrorKind.NOT_CALLABLE
        assert "string" in result.error_message

    def test_arity_mismatch(self):
        """Too few arguments is ARITY_MISMATCH."""
        result = runtime_error("""
            fun pair(a, b) { return a; }
            pair(1);
        """)
        assert result.error.kind == RuntimeErrorKind.ARITY_MISMATCH
        assert "expected 2" in result.error_message
        assert "got 1" in result.error_message

    def test_too_many_arguments(self):
        """Extra arguments are ARITY_MISMATCH as well."""
        result = runtime_error("""
            fun pair(a, b) { return a; }
            pair(1, 2, 3);
        """)
        assert result.error.kind == RuntimeErrorKind.ARITY_MISMATCH
        assert "expected 2" in result.error_message
        assert "got 3" in result.error_message

    def test_native_arity_checked(self):
        """Natives are arity checked too."""
        result = runtime_error("print(1, 2);")
        assert result.error.kind == RuntimeErrorKind.ARITY_MISMATCH


class TestRecursionLimit:
    """Test the call depth limit."""

    def test_unbounded_recursion(self):
        """Runaway recursion is E405, not a host crash."""
        result = runtime_error("fun down(n) { return down(n + 1); } down(0);")
        assert result.error.kind == RuntimeErrorKind.RECURSION_LIMIT
        assert result.diagnostics[0].code == "E405"

    def test_limit_is_configurable(self):
        """Test max_call_depth at and past the limit."""
        source = """
            fun down(n) {
                if (n <= 0) return 0;
                return down(n - 1);
            }
            print(down(%d));
        """
        config = InterpreterConfig(max_call_depth=5)
        assert output_of(source % 4, config=config) == ["0"]
        result = runtime_error(source % 5, config=config)
        assert result.error.kind == RuntimeErrorKind.RECURSION_LIMIT

    def test_deep_recursion_within_default_limit(self):
        """Recursion under the default limit runs."""
        assert output_of("""
            fun sum(n) {
                if (n == 0) return 0;
                return n + sum(n - 1);
            }
            print(sum(150));
        """) == ["11325"]

    def test_host_recursion_error_is_converted(self):
        """A host RecursionError is reported as E405."""
        interp = Interpreter(output=io.StringIO())

        def overflow(interpreter):
            raise RecursionError("maximum recursion depth exceeded")

        interp.register_native("overflow", 0, overflow)
        result, _ = run("overflow();", interp)
        assert result.error.kind == RuntimeErrorKind.RECURSION_LIMIT


class TestNativeFunctions:
    """Test host function registration."""

    def test_register_native(self):
        """Test calling a registered native."""
        interp = Interpreter()
        interp.register_native("twice", 1, lambda i, x: number_val(x.data * 2))
        result, lines = run("print(twice(21));", interp)
        assert result.success
        assert lines == ["42"]

    def test_native_exception_wrapped(self):
        """A native's exception becomes NATIVE_FAILURE."""
        interp = Interpreter()

        def explode(interpreter, value):
            raise ValueError("bad input")

        interp.register_native("explode", 1, explode)
        result, _ = run("explode(1);", interp)
        assert result.error.kind == RuntimeErrorKind.NATIVE_FAILURE
        assert "bad input" in result.error_message
        assert isinstance(result.error.__cause__, ValueError)

    def test_native_must_return_value(self):
        """A native returning a raw Python value fails."""
        interp = Interpreter()
        interp.register_native("raw", 0, lambda i: 42)
        result, _ = run("raw();", interp)
        assert result.error.kind == RuntimeErrorKind.NATIVE_FAILURE

    def test_str_native(self):
        """Test str with concatenation."""
        assert output_of('print(str(3) + "!");') == ["3!"]


class TestUnits:
    """Test unit-level behavior: persistence, failure and results."""

    def test_globals_persist_across_units(self):
        """Definitions from one unit are visible in the next."""
        interp = Interpreter()
        run("var x = 40; fun add2(n) { return n + 2; }", interp)
        result, lines = run("print(add2(x));", interp)
        assert result.success
        assert lines == ["42"]

    def test_failed_unit_keeps_completed_effects(self):
        """Statements before a runtime error keep their effects."""
        interp = Interpreter()
        result, lines = run("""
            var a = 1;
            print("before");
            print(missing);
            var c = 3;
        """, interp)
        assert not result.success
        assert lines == ["before"]
        assert interp.globals.lookup("a") == number_val(1)
        assert interp.globals.lookup("c") is None

    def test_state_reset_after_error_in_function(self):
        """An error inside a call leaves the interpreter usable."""
        interp = Interpreter()
        run("fun f() { var local = 1; return local + nil; } f();", interp)
        assert interp.environment is interp.globals
        assert interp.context.call_depth == 0
        result, _ = run("var g = 3;", interp)
        assert result.success
        assert interp.globals.lookup("g") == number_val(3)
        assert interp.globals.lookup("local") is None

    def test_syntax_error_executes_nothing(self):
        """A unit with syntax errors never runs."""
        result, lines = run("""
            print("never");
            var = 1;
            var y = ;
        """)
        assert not result.success
        assert result.is_syntax_error
        assert isinstance(result.error, CompileError)
        assert len(result.diagnostics) == 2
        assert lines == []

    def test_lexer_error_result(self):
        """Lexical errors are syntax errors."""
        result, _ = run("var x = 1 $ 2;")
        assert result.is_syntax_error
        assert result.diagnostics[0].code == "E001"

    def test_value_of_final_expression(self):
        """The result carries the final expression's value."""
        interp = Interpreter()
        result = run_source("var x = 6; x * 7", interp, interactive=True)
        assert result.value == number_val(42)
        result = run_source("var y = 1;", interp)
        assert result.value is NIL

    def test_execute_parsed_statements(self):
        """execute runs an already parsed program."""
        source = 'var s = "parsed"; s'
        program = parse(tokenize(source), source=source, interactive=True)
        result = execute(program)
        assert result.success
        assert result.value == string_val("parsed")

    def test_interpret_raises(self):
        """interpret raises instead of returning a result."""
        interp = Interpreter()
        program = parse(tokenize("undefined_thing;"))
        with pytest.raises(ReefRuntimeError):
            interp.interpret(program)

    def test_lexer_and_parser_errors_reported_together(self):
        """Lexical and syntax errors from one unit come back in source order."""
        result, _ = run("""
            var a = 1 $ 2;
            var = 3;
            print("#");
            var b = # 4;
        """)
        assert result.is_syntax_error
        codes = [d.code for d in result.diagnostics]
        assert codes[0] == "E001"
        assert "E101" in codes
        assert codes.count("E001") == 2
        lines = [d.line for d in result.diagnostics]
        assert lines == sorted(lines)

    def test_evaluate_is_repeatable(self):
        """Evaluating a pure expression twice gives the same value."""
        interp = Interpreter(output=io.StringIO())
        run("var x = 20;", interp)
        expr = parse(tokenize("x * 2 + 1;")).statements[0].expression
        assert interp.evaluate(expr) == number_val(41)
        assert interp.evaluate(expr) == number_val(41)
        assert interp.globals.lookup("x") == number_val(20)


def nested(depth: int, inner: str = "1") -> str:
    """An expression wrapped in `depth` pairs of parentheses."""
    return "(" * depth + inner + ")" * depth


class TestNestingLimit:
    """Deeply nested input is a syntax error, never a host crash."""

    def test_deep_grouping_runs(self):
        """Two hundred levels of parentheses are within the limit."""
        assert output_of(f"print({nested(200)});") == ["1"]

    def test_too_deep_grouping(self):
        """Nesting past the limit is reported as E108 and nothing runs."""
        result, lines = run(f'print("never"); print({nested(300)});')
        assert result.is_syntax_error
        assert [d.code for d in result.diagnostics] == ["E108"]
        assert "nested too deeply" in result.diagnostics[0].message
        assert lines == []

    def test_very_deep_grouping(self):
        """Input far past the limit is rejected the same way."""
        result, _ = run(f"{nested(5000)};")
        assert [d.code for d in result.diagnostics] == ["E108"]

    def test_deep_unary_chain(self):
        """A long run of '!' counts toward the limit."""
        result, _ = run("print(" + "!" * 1000 + "true);")
        assert [d.code for d in result.diagnostics] == ["E108"]

    def test_deep_blocks(self):
        """Nested blocks count toward the limit."""
        result, _ = run("{" * 400 + "}" * 400)
        assert [d.code for d in result.diagnostics] == ["E108"]

    def test_interpreter_usable_afterwards(self):
        """A rejected unit leaves the interpreter as it was."""
        interp = Interpreter()
        run("var kept = 5;", interp)
        run(f"kept = {nested(300)};", interp)
        result, lines = run("print(kept);", interp)
        assert result.success
        assert lines == ["5"]
