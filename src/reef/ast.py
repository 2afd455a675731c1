"""
Abstract Syntax Tree (AST) node definitions for Reef.

The AST is produced by the parser and walked by the interpreter. Nodes own
their children; the tree is acyclic and never mutated after construction.
Every node carries a span so runtime errors can report a source line.

The variant sets below are closed: the interpreter dispatches over exactly
these expression and statement kinds.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Union, Any
from abc import ABC
from .tokens import SourceSpan, Token


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    @property
    def line(self) -> int:
        return self.span.start.line

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Literal(Expression):
    """A literal value: number, string, true, false or nil."""
    value: Union[float, str, bool, None]


@dataclass
class Grouping(Expression):
    """A parenthesized expression."""
    expression: Expression


@dataclass
class Unary(Expression):
    """A prefix operation (-x, !x)."""
    operator: Token
    right: Expression


@dataclass
class Binary(Expression):
    """An arithmetic, comparison or equality operation."""
    left: Expression
    operator: Token
    right: Expression


@dataclass
class Logical(Expression):
    """A short-circuiting 'and' / 'or'."""
    left: Expression
    operator: Token
    right: Expression


@dataclass
class Variable(Expression):
    """A variable reference."""
    name: Token


@dataclass
class Assign(Expression):
    """Assignment to an existing variable; evaluates to the assigned value."""
    name: Token
    value: Expression


@dataclass
class Call(Expression):
    """A call expression. `paren` is the closing ')' used for error locations."""
    callee: Expression
    paren: Token
    arguments: List[Expression] = field(default_factory=list)


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Statement(AstNode):
    """Base class for all statements."""
    pass


@dataclass
class ExpressionStatement(Statement):
    """An expression evaluated for its side effects."""
    expression: Expression


@dataclass
class VarDecl(Statement):
    """A variable declaration: var name = initializer;"""
    name: Token
    initializer: Optional[Expression] = None


@dataclass
class Block(Statement):
    """A braced block; introduces a new scope."""
    statements: List[Statement] = field(default_factory=list)


@dataclass
class IfStatement(Statement):
    """An if statement with optional else branch."""
    condition: Expression
    then_branch: Statement
    else_branch: Optional[Statement] = None


@dataclass
class WhileStatement(Statement):
    """A while loop. `for` loops are desugared into this."""
    condition: Expression
    body: Statement


@dataclass
class FunctionDecl(Statement):
    """A named function declaration."""
    name: Token
    params: List[Token]
    body: List[Statement]

    @property
    def arity(self) -> int:
        return len(self.params)


@dataclass
class ReturnStatement(Statement):
    """A return statement; `value` is None for a bare return."""
    keyword: Token
    value: Optional[Expression] = None


@dataclass
class Program(AstNode):
    """A complete parsed unit (a file or one REPL line)."""
    statements: List[Statement] = field(default_factory=list)


# =============================================================================
# Visitor Helpers
# =============================================================================

class PrintVisitor(AstVisitor):
    """Debug visitor that prints the AST structure."""

    def __init__(self, indent: int = 0, write=print):
        self.indent = indent
        self.write = write

    def _print(self, text: str) -> None:
        self.write("  " * self.indent + text)

    def _child(self) -> "PrintVisitor":
        return PrintVisitor(self.indent + 2, self.write)

    def visit_Literal(self, node: Literal) -> None:
        self._print(f"Literal {_show(node.value)}")

    def visit_Variable(self, node: Variable) -> None:
        self._print(f"Variable {node.name.lexeme}")

    def generic_visit(self, node: AstNode) -> None:
        self._print(f"{node.__class__.__name__}")
        for name, value in node.__dict__.items():
            if name == "span":
                continue
            if isinstance(value, AstNode):
                self._print(f"  {name}:")
                value.accept(self._child())
            elif isinstance(value, list):
                self._print(f"  {name}: [")
                for item in value:
                    if isinstance(item, AstNode):
                        item.accept(self._child())
                    else:
                        self._print(f"    {_show(item)}")
                self._print("  ]")
            else:
                self._print(f"  {name}: {_show(value)}")


def _show(value: Any) -> str:
    if isinstance(value, Token):
        return value.lexeme
    return repr(value)


def print_ast(node: AstNode, write=print) -> None:
    """Print an AST node for debugging."""
    node.accept(PrintVisitor(write=write))
