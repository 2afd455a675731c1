"""
Recursive descent parser for Reef.

Converts a token stream into a Program AST. Syntax errors are collected
rather than raised one at a time: after an error the parser synchronizes to
the next statement boundary and continues, so every error in a unit is
reported together. A unit with any error is never handed to the interpreter.
"""

from contextlib import contextmanager
from typing import List, Optional
from .tokens import Token, TokenType, SourceSpan, is_reserved
from .ast import (
    # Expressions
    Expression, Literal, Grouping, Unary, Binary, Logical,
    Variable, Assign, Call,
    # Statements
    Statement, ExpressionStatement, VarDecl, Block, IfStatement,
    WhileStatement, FunctionDecl, ReturnStatement,
    Program,
)
from .lexer import Lexer
from .errors import (
    ParserError,
    NestingError,
    CompileError,
    error_unexpected_token,
    error_unexpected_eof,
    error_invalid_expression,
    error_invalid_assignment_target,
    error_too_many_arguments,
    error_return_outside_function,
    error_reserved_keyword,
    error_nesting_too_deep,
    DiagnosticCollector,
)
from .util import recursion_headroom


MAX_ARGUMENTS = 255

# Nested groupings, unary operators, blocks and bodies, counted together
MAX_NESTING = 256

# Host frames one nesting level can cost on the way down to a primary
_FRAMES_PER_LEVEL = 20


class Parser:
    """
    Recursive descent parser for Reef.

    Usage:
        parser = Parser(tokens)
        program = parser.parse_program()
        if parser.diagnostics.has_errors:
            ...

    Precedence, lowest to highest:
        assignment (right-associative)
        or
        and
        == !=
        < <= > >=
        + -
        * /
        unary (! -)
        call
    """

    EQUALITY = (TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL)
    COMPARISON = (TokenType.GREATER, TokenType.GREATER_EQUAL,
                  TokenType.LESS, TokenType.LESS_EQUAL)
    TERM = (TokenType.MINUS, TokenType.PLUS)
    FACTOR = (TokenType.SLASH, TokenType.STAR)

    # Tokens that begin a statement; used to resynchronize after an error
    STATEMENT_STARTS = (
        TokenType.CLASS, TokenType.FUN, TokenType.VAR, TokenType.FOR,
        TokenType.IF, TokenType.WHILE, TokenType.RETURN,
    )

    def __init__(self, tokens: List[Token], filename: Optional[str] = None,
                 source: Optional[str] = None, interactive: bool = False):
        self.tokens = tokens
        self.filename = filename
        self.source = source
        self.interactive = interactive  # allow a final expression without ';'
        self.pos = 0
        self.diagnostics = DiagnosticCollector()
        self._function_depth = 0
        self._nesting = 0
        self._lines = source.splitlines() if source else []

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _previous(self) -> Token:
        """Get the most recently consumed token."""
        return self.tokens[max(0, self.pos - 1)]

    def _is_at_end(self) -> bool:
        """Check if at end of tokens."""
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        raise self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _source_line(self, line: int) -> Optional[str]:
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return None

    def _error(self, expected: str) -> ParserError:
        """Build a parser error for the current token."""
        token = self._current()
        if token.type == TokenType.EOF:
            return error_unexpected_eof(expected, token.span)
        return error_unexpected_token(expected, token, self._source_line(token.line))

    def _report(self, error: ParserError) -> None:
        """Record an error without unwinding."""
        self.diagnostics.add_error(error)

    def _span_from(self, start: Token) -> SourceSpan:
        """Create a span from start token to the last consumed token."""
        end_token = self._previous()
        return SourceSpan(start.span.start, end_token.span.end)

    def _synchronize(self) -> None:
        """Discard tokens until a likely statement boundary."""
        self._advance()
        while not self._is_at_end():
            if self._previous().type == TokenType.SEMICOLON:
                return
            if self._current().type in self.STATEMENT_STARTS:
                return
            self._advance()

    @contextmanager
    def _nested(self):
        """Count one level of nesting around a recursive descent."""
        if self._nesting >= MAX_NESTING:
            token = self._current()
            raise error_nesting_too_deep(MAX_NESTING, token.span, self._source_line(token.line))
        self._nesting += 1
        try:
            yield
        finally:
            self._nesting -= 1

    # =========================================================================
    # Declarations
    # =========================================================================

    def _declaration(self) -> Optional[Statement]:
        """Parse a declaration, recovering from errors."""
        try:
            if self._check(TokenType.FUN):
                return self._function_declaration()
            if self._check(TokenType.VAR):
                return self._var_declaration()
            return self._statement()
        except NestingError:
            raise
        except ParserError as e:
            self._report(e)
            self._synchronize()
            return None

    def _function_declaration(self) -> FunctionDecl:
        """Parse: fun name(params) { body }"""
        start = self._advance()  # consume 'fun'
        name = self._consume(TokenType.IDENTIFIER, "function name")
        self._consume(TokenType.LEFT_PAREN, "'(' after function name")

        params: List[Token] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_ARGUMENTS:
                    token = self._current()
                    self._report(error_too_many_arguments(
                        "parameters", MAX_ARGUMENTS, token.span, self._source_line(token.line)
                    ))
                params.append(self._consume(TokenType.IDENTIFIER, "parameter name"))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "')' after parameters")

        self._consume(TokenType.LEFT_BRACE, "'{' before function body")
        self._function_depth += 1
        try:
            with self._nested():
                body = self._block_statements()
        finally:
            self._function_depth -= 1

        return FunctionDecl(
            span=self._span_from(start),
            name=name,
            params=params,
            body=body,
        )

    def _var_declaration(self) -> VarDecl:
        """Parse: var name (= initializer)? ;"""
        start = self._advance()  # consume 'var'
        name = self._consume(TokenType.IDENTIFIER, "variable name")

        initializer = None
        if self._match(TokenType.EQUAL):
            initializer = self._expression()

        self._consume(TokenType.SEMICOLON, "';' after variable declaration")
        return VarDecl(span=self._span_from(start), name=name, initializer=initializer)

    # =========================================================================
    # Statements
    # =========================================================================

    def _statement(self) -> Statement:
        """Parse a statement."""
        with self._nested():
            token = self._current()
            if is_reserved(token.type):
                raise error_reserved_keyword(token, self._source_line(token.line))
            if token.type == TokenType.FOR:
                return self._for_statement()
            if token.type == TokenType.IF:
                return self._if_statement()
            if token.type == TokenType.RETURN:
                return self._return_statement()
            if token.type == TokenType.WHILE:
                return self._while_statement()
            if token.type == TokenType.LEFT_BRACE:
                start = self._advance()
                statements = self._block_statements()
                return Block(span=self._span_from(start), statements=statements)
            return self._expression_statement()

    def _block_statements(self) -> List[Statement]:
        """Parse statements up to the closing '}' (opening brace already consumed)."""
        statements = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        self._consume(TokenType.RIGHT_BRACE, "'}' after block")
        return statements

    def _if_statement(self) -> IfStatement:
        """Parse: if (cond) stmt (else stmt)?"""
        start = self._advance()  # consume 'if'
        self._consume(TokenType.LEFT_PAREN, "'(' after 'if'")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "')' after if condition")

        then_branch = self._statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._statement()

        return IfStatement(
            span=self._span_from(start),
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
        )

    def _while_statement(self) -> WhileStatement:
        """Parse: while (cond) stmt"""
        start = self._advance()  # consume 'while'
        self._consume(TokenType.LEFT_PAREN, "'(' after 'while'")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "')' after condition")
        body = self._statement()
        return WhileStatement(span=self._span_from(start), condition=condition, body=body)

    def _for_statement(self) -> Statement:
        """
        Parse a C-style for loop and desugar it.

            for (init; cond; incr) body

        becomes

            { init; while (cond) { body; incr; } }
        """
        start = self._advance()  # consume 'for'
        self._consume(TokenType.LEFT_PAREN, "'(' after 'for'")

        if self._match(TokenType.SEMICOLON):
            initializer = None
        elif self._check(TokenType.VAR):
            initializer = self._var_declaration()
        else:
            initializer = self._expression_statement()

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._expression()
        self._consume(TokenType.SEMICOLON, "';' after loop condition")

        increment = None
        if not self._check(TokenType.RIGHT_PAREN):
            increment = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "')' after for clauses")

        body = self._statement()
        span = self._span_from(start)

        if increment is not None:
            body = Block(
                span=span,
                statements=[body, ExpressionStatement(span=increment.span, expression=increment)],
            )
        if condition is None:
            condition = Literal(span=span, value=True)
        loop: Statement = WhileStatement(span=span, condition=condition, body=body)
        if initializer is not None:
            loop = Block(span=span, statements=[initializer, loop])
        return loop

    def _return_statement(self) -> ReturnStatement:
        """Parse: return expr? ;"""
        keyword = self._advance()  # consume 'return'
        if self._function_depth == 0:
            self._report(error_return_outside_function(
                keyword.span, self._source_line(keyword.line)
            ))

        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._expression()
        self._consume(TokenType.SEMICOLON, "';' after return value")
        return ReturnStatement(span=self._span_from(keyword), keyword=keyword, value=value)

    def _expression_statement(self) -> ExpressionStatement:
        """Parse: expr ;"""
        start = self._current()
        expression = self._expression()
        if not (self.interactive and self._is_at_end()):
            self._consume(TokenType.SEMICOLON, "';' after expression")
        return ExpressionStatement(span=self._span_from(start), expression=expression)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _expression(self) -> Expression:
        with self._nested():
            return self._assignment()

    def _assignment(self) -> Expression:
        """Parse assignment (right-associative)."""
        expr = self._or()

        equals = self._match(TokenType.EQUAL)
        if equals is not None:
            with self._nested():
                value = self._assignment()
            span = SourceSpan(expr.span.start, value.span.end)
            if isinstance(expr, Variable):
                return Assign(span=span, name=expr.name, value=value)
            # Reported but not raised: the parser is not confused
            self._report(error_invalid_assignment_target(
                expr.span, self._source_line(equals.line)
            ))
        return expr

    def _or(self) -> Expression:
        expr = self._and()
        while True:
            operator = self._match(TokenType.OR)
            if operator is None:
                return expr
            right = self._and()
            expr = Logical(span=SourceSpan(expr.span.start, right.span.end),
                           left=expr, operator=operator, right=right)

    def _and(self) -> Expression:
        expr = self._equality()
        while True:
            operator = self._match(TokenType.AND)
            if operator is None:
                return expr
            right = self._equality()
            expr = Logical(span=SourceSpan(expr.span.start, right.span.end),
                           left=expr, operator=operator, right=right)

    def _binary_level(self, operators, operand) -> Expression:
        """Parse a left-associative binary precedence level."""
        expr = operand()
        while True:
            operator = self._match(*operators)
            if operator is None:
                return expr
            right = operand()
            expr = Binary(span=SourceSpan(expr.span.start, right.span.end),
                          left=expr, operator=operator, right=right)

    def _equality(self) -> Expression:
        return self._binary_level(self.EQUALITY, self._comparison)

    def _comparison(self) -> Expression:
        return self._binary_level(self.COMPARISON, self._term)

    def _term(self) -> Expression:
        return self._binary_level(self.TERM, self._factor)

    def _factor(self) -> Expression:
        return self._binary_level(self.FACTOR, self._unary)

    def _unary(self) -> Expression:
        operator = self._match(TokenType.BANG, TokenType.MINUS)
        if operator is not None:
            with self._nested():
                right = self._unary()
            return Unary(span=SourceSpan(operator.span.start, right.span.end),
                         operator=operator, right=right)
        return self._call()

    def _call(self) -> Expression:
        """Parse a primary followed by any number of call suffixes."""
        expr = self._primary()
        while self._match(TokenType.LEFT_PAREN):
            expr = self._finish_call(expr)
        return expr

    def _finish_call(self, callee: Expression) -> Call:
        arguments: List[Expression] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(arguments) >= MAX_ARGUMENTS:
                    token = self._current()
                    self._report(error_too_many_arguments(
                        "arguments", MAX_ARGUMENTS, token.span, self._source_line(token.line)
                    ))
                arguments.append(self._expression())
                if not self._match(TokenType.COMMA):
                    break
        paren = self._consume(TokenType.RIGHT_PAREN, "')' after arguments")
        return Call(
            span=SourceSpan(callee.span.start, paren.span.end),
            callee=callee,
            paren=paren,
            arguments=arguments,
        )

    def _primary(self) -> Expression:
        token = self._current()

        if token.type == TokenType.FALSE:
            self._advance()
            return Literal(span=token.span, value=False)
        if token.type == TokenType.TRUE:
            self._advance()
            return Literal(span=token.span, value=True)
        if token.type == TokenType.NIL:
            self._advance()
            return Literal(span=token.span, value=None)
        if token.type in (TokenType.NUMBER, TokenType.STRING):
            self._advance()
            return Literal(span=token.span, value=token.value)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return Variable(span=token.span, name=token)
        if token.type == TokenType.LEFT_PAREN:
            self._advance()
            expression = self._expression()
            self._consume(TokenType.RIGHT_PAREN, "')' after expression")
            return Grouping(span=self._span_from(token), expression=expression)
        if is_reserved(token.type):
            raise error_reserved_keyword(token, self._source_line(token.line))
        if token.type == TokenType.EOF:
            raise error_unexpected_eof("expression", token.span)
        raise error_invalid_expression(token, self._source_line(token.line))

    # =========================================================================
    # Entry Point
    # =========================================================================

    def parse_program(self) -> Program:
        """Parse a complete unit. Errors are left in self.diagnostics."""
        start = self._current()
        statements = []
        with recursion_headroom(MAX_NESTING * _FRAMES_PER_LEVEL):
            try:
                while not self._is_at_end():
                    stmt = self._declaration()
                    if stmt is not None:
                        statements.append(stmt)
                    if self.diagnostics.should_stop:
                        break
            except NestingError as e:
                self._report(e)
            except RecursionError:
                token = self._current()
                self._report(error_nesting_too_deep(
                    MAX_NESTING, token.span, self._source_line(token.line)
                ))
        return Program(span=self._span_from(start) if statements else start.span,
                       statements=statements)


def parse(tokens: List[Token], filename: Optional[str] = None,
          source: Optional[str] = None, interactive: bool = False) -> Program:
    """
    Convenience function to parse tokens into a program.

    Args:
        tokens: List of tokens from the lexer
        filename: Optional filename for error messages
        source: Optional original source code for error context
        interactive: Accept a trailing expression without ';' (REPL input)

    Returns:
        Parsed Program AST

    Raises:
        CompileError: If any syntax error was found; carries all of them
    """
    parser = Parser(tokens, filename, source, interactive)
    program = parser.parse_program()
    if parser.diagnostics.has_errors:
        raise CompileError(parser.diagnostics.diagnostics)
    return program


def parse_source(source: str, filename: Optional[str] = None,
                 interactive: bool = False) -> Program:
    """
    Scan and parse source text in one step.

    The lexer skips past bad characters and the parser recovers at
    statement boundaries, so errors from both stages are reported together,
    in source order.

    Raises:
        CompileError: If the unit has any lexical or syntax error
    """
    lexer = Lexer(source, filename)
    tokens = lexer.tokenize()
    parser = Parser(tokens, filename, source, interactive)
    program = parser.parse_program()
    diagnostics = lexer.diagnostics.diagnostics + parser.diagnostics.diagnostics
    if diagnostics:
        diagnostics.sort(key=lambda d: d.span.start.offset)
        raise CompileError(diagnostics)
    return program
