"""
Tests for the Reef parser.
"""

import pytest
import textwrap

from reef import (
    tokenize, parse, Parser, CompileError, print_ast, AstVisitor, MAX_NESTING,
    Program, Literal, Grouping, Unary, Binary, Logical, Variable, Assign, Call,
    ExpressionStatement, VarDecl, Block, IfStatement, WhileStatement,
    FunctionDecl, ReturnStatement, TokenType,
)
from reef import parse_source as parse_text


def parse_source(source: str, interactive: bool = False) -> Program:
    """Helper to parse dedented source code."""
    source = textwrap.dedent(source).strip()
    return parse(tokenize(source), source=source, interactive=interactive)


def parse_expr(source: str):
    """Parse a single expression statement and return its expression."""
    program = parse_source(source + ";")
    assert len(program.statements) == 1
    stmt = program.statements[0]
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


def syntax_errors(source: str):
    """Parse source expected to fail; return the diagnostics."""
    source = textwrap.dedent(source).strip()
    with pytest.raises(CompileError) as exc_info:
        parse(tokenize(source), source=source)
    return exc_info.value.diagnostics


class TestExpressions:
    """Test expression parsing and precedence."""

    def test_literals(self):
        """Test each literal kind."""
        assert parse_expr("12").value == 12.0
        assert parse_expr('"s"').value == "s"
        assert parse_expr("true").value is True
        assert parse_expr("false").value is False
        assert parse_expr("nil").value is None

    def test_factor_binds_tighter_than_term(self):
        """1 + 2 * 3 parses as 1 + (2 * 3)."""
        expr = parse_expr("1 + 2 * 3")
        assert isinstance(expr, Binary)
        assert expr.operator.type == TokenType.PLUS
        assert isinstance(expr.right, Binary)
        assert expr.right.operator.type == TokenType.STAR

    def test_left_associative(self):
        """10 - 4 - 3 parses as (10 - 4) - 3."""
        expr = parse_expr("10 - 4 - 3")
        assert isinstance(expr.left, Binary)
        assert expr.right.value == 3.0

    def test_comparison_below_equality(self):
        """Comparison binds tighter than equality."""
        expr = parse_expr("1 < 2 == true")
        assert expr.operator.type == TokenType.EQUAL_EQUAL
        assert expr.left.operator.type == TokenType.LESS

    def test_grouping(self):
        """Parentheses override precedence."""
        expr = parse_expr("(1 + 2) * 3")
        assert expr.operator.type == TokenType.STAR
        assert isinstance(expr.left, Grouping)

    def test_unary_nesting(self):
        """Unary operators nest."""
        expr = parse_expr("!!true")
        assert isinstance(expr, Unary)
        assert isinstance(expr.right, Unary)

    def test_and_binds_tighter_than_or(self):
        """Test logical operator precedence."""
        expr = parse_expr("a or b and c")
        assert isinstance(expr, Logical)
        assert expr.operator.type == TokenType.OR
        assert expr.right.operator.type == TokenType.AND

    def test_assignment_right_associative(self):
        """a = b = 3 assigns b first."""
        expr = parse_expr("a = b = 3")
        assert isinstance(expr, Assign)
        assert expr.name.lexeme == "a"
        assert isinstance(expr.value, Assign)
        assert expr.value.name.lexeme == "b"

    def test_call_chain(self):
        """f(1)(2) calls the result of f(1)."""
        expr = parse_expr("f(1)(2)")
        assert isinstance(expr, Call)
        assert isinstance(expr.callee, Call)
        assert isinstance(expr.callee.callee, Variable)
        assert expr.arguments[0].value == 2.0

    def test_call_paren_token(self):
        """A call keeps its closing paren for error locations."""
        expr = parse_expr("f(a, b)")
        assert len(expr.arguments) == 2
        assert expr.paren.type == TokenType.RIGHT_PAREN


class TestStatements:
    """Test statement parsing."""

    def test_var_declaration(self):
        """Test declarations with and without an initializer."""
        program = parse_source("var x = 1; var y;")
        first, second = program.statements
        assert isinstance(first, VarDecl)
        assert first.name.lexeme == "x"
        assert second.initializer is None

    def test_block(self):
        """Blocks nest."""
        program = parse_source("{ var x = 1; { x; } }")
        block = program.statements[0]
        assert isinstance(block, Block)
        assert isinstance(block.statements[1], Block)

    def test_if_else(self):
        """Test an if with an else branch."""
        program = parse_source("if (x) a; else b;")
        stmt = program.statements[0]
        assert isinstance(stmt, IfStatement)
        assert stmt.else_branch is not None

    def test_dangling_else_binds_nearest(self):
        """else belongs to the nearest if."""
        program = parse_source("if (a) if (b) c; else d;")
        outer = program.statements[0]
        assert outer.else_branch is None
        assert outer.then_branch.else_branch is not None

    def test_while(self):
        """Test a while loop with a single statement body."""
        program = parse_source("while (i < 3) i = i + 1;")
        stmt = program.statements[0]
        assert isinstance(stmt, WhileStatement)
        assert isinstance(stmt.body, ExpressionStatement)

    def test_for_desugars_to_while(self):
        """for (init; cond; incr) body becomes { init; while (cond) { body; incr; } }."""
        program = parse_source("for (var i = 0; i < 3; i = i + 1) print(i);")
        outer = program.statements[0]
        assert isinstance(outer, Block)
        init, loop = outer.statements
        assert isinstance(init, VarDecl)
        assert isinstance(loop, WhileStatement)
        assert isinstance(loop.body, Block)
        assert isinstance(loop.body.statements[1].expression, Assign)

    def test_for_without_clauses(self):
        """An empty condition loops forever."""
        program = parse_source("for (;;) x;")
        loop = program.statements[0]
        assert isinstance(loop, WhileStatement)
        assert isinstance(loop.condition, Literal)
        assert loop.condition.value is True

    def test_function_declaration(self):
        """Test a function's name, parameters and body."""
        program = parse_source("""
            fun add(a, b) {
                return a + b;
            }
        """)
        func = program.statements[0]
        assert isinstance(func, FunctionDecl)
        assert func.name.lexeme == "add"
        assert [p.lexeme for p in func.params] == ["a", "b"]
        assert func.arity == 2
        assert isinstance(func.body[0], ReturnStatement)

    def test_bare_return(self):
        """return without a value has no expression."""
        program = parse_source("fun f() { return; }")
        assert program.statements[0].body[0].value is None

    def test_spans_cover_lines(self):
        """Statements report the line they start on."""
        program = parse_source("""
            var a = 1;

            fun f() {
                return a;
            }
        """)
        assert program.statements[0].line == 1
        assert program.statements[1].line == 3
        assert program.statements[1].body[0].line == 4

    def test_interactive_trailing_expression(self):
        """REPL input may omit the final ';' on an expression."""
        program = parse_source("1 + 2", interactive=True)
        assert isinstance(program.statements[0], ExpressionStatement)

    def test_missing_semicolon_outside_repl(self):
        """A file may not end with an unterminated expression."""
        diagnostics = syntax_errors("1 + 2")
        assert diagnostics[0].code == "E102"


class TestSyntaxErrors:
    """Test error reporting and recovery."""

    def test_unexpected_token(self):
        """Test E101."""
        diagnostics = syntax_errors("var 1 = 2;")
        assert diagnostics[0].code == "E101"
        assert "variable name" in diagnostics[0].message

    def test_invalid_expression(self):
        """Test E103."""
        diagnostics = syntax_errors("var x = );")
        assert diagnostics[0].code == "E103"

    def test_invalid_assignment_target(self):
        """Test E104."""
        diagnostics = syntax_errors("1 + 2 = 3;")
        assert diagnostics[0].code == "E104"

    def test_return_at_top_level(self):
        """Test E106."""
        diagnostics = syntax_errors("return 1;")
        assert diagnostics[0].code == "E106"

    def test_return_inside_nested_block_of_function(self):
        """return is allowed anywhere inside a function body."""
        parse_source("fun f() { while (true) { if (x) return 1; } }")

    def test_reserved_keyword(self):
        """Test E107 at statement start."""
        diagnostics = syntax_errors("class Foo {}")
        assert diagnostics[0].code == "E107"
        assert "'class'" in diagnostics[0].message

    def test_reserved_keyword_in_expression(self):
        """Test E107 inside an expression."""
        diagnostics = syntax_errors("var me = this;")
        assert diagnostics[0].code == "E107"

    def test_too_many_arguments(self):
        """Test E105."""
        args = ", ".join(["1"] * 256)
        diagnostics = syntax_errors(f"f({args});")
        assert diagnostics[0].code == "E105"

    def test_all_errors_reported(self):
        """The parser recovers at statement boundaries and keeps going."""
        diagnostics = syntax_errors("""
            var = 1;
            print(1);
            var y = ;
            fun () {}
        """)
        assert [d.line for d in diagnostics] == [1, 3, 4]

    def test_error_inside_block_recovers(self):
        """Recovery inside a function body resumes after the block."""
        diagnostics = syntax_errors("""
            fun f() {
                var = 1;
                return 2;
            }
            var z = ;
        """)
        assert [d.line for d in diagnostics] == [2, 5]

    def test_parser_collects_without_raising(self):
        """parse_program leaves errors in the collector."""
        source = "var = 1; var ok = 2;"
        parser = Parser(tokenize(source), source=source)
        program = parser.parse_program()
        assert parser.diagnostics.has_errors
        assert len(program.statements) == 1


class TestNesting:
    """Test the nesting limit."""

    def test_nesting_limit_reported_once(self):
        """E108 ends the parse with a single diagnostic."""
        diagnostics = syntax_errors("(" * (MAX_NESTING + 10) + "1" + ")" * (MAX_NESTING + 10) + ";")
        assert [d.code for d in diagnostics] == ["E108"]
        assert str(MAX_NESTING) in diagnostics[0].message

    def test_nesting_error_points_at_token(self):
        """The diagnostic carries the line where the limit was crossed."""
        source = "var ok = 1;\nvar deep = " + "-" * (MAX_NESTING + 10) + "1;"
        diagnostics = syntax_errors(source)
        assert diagnostics[0].line == 2
        assert diagnostics[0].source_line.startswith("var deep")

    def test_statements_before_limit_are_kept(self):
        """parse_program keeps what it parsed before the limit was hit."""
        source = "var a = 1;\n" + "{" * (MAX_NESTING + 1)
        parser = Parser(tokenize(source), source=source)
        program = parser.parse_program()
        assert len(program.statements) == 1
        assert parser.diagnostics.diagnostics[-1].code == "E108"

    def test_host_recursion_error_becomes_syntax_error(self, monkeypatch):
        """A RecursionError while parsing is reported as E108."""
        def overflow(self):
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr(Parser, "_primary", overflow)
        diagnostics = syntax_errors("1 + 2;")
        assert [d.code for d in diagnostics] == ["E108"]


class TestParseSource:
    """Test scanning and parsing in one step."""

    def test_returns_program(self):
        """Valid source parses to a Program."""
        program = parse_text("var a = 1; a;")
        assert len(program.statements) == 2

    def test_combines_lexer_and_parser_errors(self):
        """Both stages report, ordered by position in the source."""
        with pytest.raises(CompileError) as exc_info:
            parse_text("var = 1;\nvar b = @;\nvar c = #;")
        codes = [d.code for d in exc_info.value.diagnostics]
        assert codes == ["E101", "E001", "E103", "E001", "E103"]

    def test_two_lexer_errors_without_parse_errors(self):
        """Skipped characters may leave valid syntax behind."""
        with pytest.raises(CompileError) as exc_info:
            parse_text("var a = 1 @;\nvar b = 2 #;")
        assert [d.code for d in exc_info.value.diagnostics] == ["E001", "E001"]
        assert [d.line for d in exc_info.value.diagnostics] == [1, 2]


class TestPrintAst:
    """Test the debug printer."""

    def test_print_ast_writes_nodes(self):
        """Test the node names and operators in the output."""
        lines = []
        print_ast(parse_source("var x = 1 + 2;"), write=lines.append)
        text = "\n".join(lines)
        assert "Program" in text
        assert "VarDecl" in text
        assert "Binary" in text
        assert "+" in text

    def test_leaves_print_on_one_line(self):
        """Literals and variables use their own visit methods."""
        lines = []
        print_ast(parse_source("x + 1;"), write=lines.append)
        stripped = [line.strip() for line in lines]
        assert "Variable x" in stripped
        assert "Literal 1.0" in stripped

    def test_accept_dispatch(self):
        """accept calls visit_<Class> when defined, generic_visit otherwise."""
        class LiteralCounter(AstVisitor):
            def __init__(self):
                self.literals = 0

            def visit_Literal(self, node):
                self.literals += 1

            def generic_visit(self, node):
                return node.__class__.__name__

        expr = parse_expr("1 + 2")
        visitor = LiteralCounter()
        assert expr.accept(visitor) == "Binary"
        expr.left.accept(visitor)
        expr.right.accept(visitor)
        assert visitor.literals == 2
