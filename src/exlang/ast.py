"""Ex AST — parse-time node definitions.

Every node carries its source position, excluded from equality so that two
trees compare structurally regardless of layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# BASES
# ============================================================


@dataclass
class Node:
    """Base for all nodes."""

    pos: Pos = field(compare=False, repr=False)


@dataclass
class Expr(Node):
    """Base for nodes that push exactly one value when evaluated."""


@dataclass
class Stmt(Node):
    """Base for statement-only nodes."""


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass
class IntLit(Expr):
    value: int


@dataclass
class FloatLit(Expr):
    value: float


@dataclass
class StringLit(Expr):
    value: str


@dataclass
class BoolLit(Expr):
    value: bool


@dataclass
class Var(Expr):
    """Reference to a variable in the current scope."""

    name: str


@dataclass
class UnaryOp(Expr):
    """+x or -x."""

    op: str
    operand: Expr


@dataclass
class BinaryOp(Expr):
    """left op right."""

    op: str
    left: Expr
    right: Expr


@dataclass
class Call(Expr):
    """name(args): std function or user function."""

    name: str
    args: list[Expr]


@dataclass
class MethodCall(Expr):
    """name.method(args), receiver looked up as a variable."""

    receiver: str
    method: str
    args: list[Expr]


@dataclass
class ExprMethodCall(Expr):
    """(expr).method(args), receiver is any expression."""

    receiver: Expr
    method: str
    args: list[Expr]


# ============================================================
# STATEMENTS
# ============================================================


@dataclass
class Assign(Stmt):
    """name = value. value may itself be a statement (a = if ...)."""

    name: str
    value: Node


@dataclass
class FnDecl(Stmt):
    """fn name(params) { body }."""

    name: str
    params: list[str]
    body: list[Node]


@dataclass
class Return(Stmt):
    """return expr."""

    value: Expr


@dataclass
class If(Stmt):
    """if cond { ... } else { ... }."""

    cond: Expr
    then_body: list[Node]
    else_body: list[Node] | None


@dataclass
class While(Stmt):
    """while cond { ... }."""

    cond: Expr
    body: list[Node]


@dataclass
class For(Stmt):
    """for var in [low, high] { ... }."""

    var: str
    low: Expr
    high: Expr
    body: list[Node]


@dataclass
class Block(Stmt):
    """Ordered statement list; the root of every parsed program."""

    body: list[Node]
