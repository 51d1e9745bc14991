"""Ex emitter — converts an AST back into Ex source text.

Total over the node set in `exlang/ast.py`: a new node type needs a branch here.
Parsing the output yields a tree equal to the input.
"""

from __future__ import annotations

from decimal import Decimal
import math

from .ast import (
    Assign,
    BinaryOp,
    Block,
    BoolLit,
    Call,
    Expr,
    ExprMethodCall,
    FloatLit,
    FnDecl,
    For,
    If,
    IntLit,
    MethodCall,
    Node,
    Return,
    StringLit,
    UnaryOp,
    Var,
    While,
)


def to_source(program: Block) -> str:
    """Render a program `Block` back into Ex source text."""
    return _Emitter().emit_program(program)


def render_float(value: float) -> str:
    """Positional spelling of a float that the tokenizer reads back exactly."""
    if not math.isfinite(value):
        raise ValueError(f"float literal cannot be {value!r}")
    text = format(Decimal(repr(value)), "f")
    if "." not in text:
        text += ".0"
    return text


class _Emitter:
    _INDENT: str = "    "

    # Expression precedence (higher binds tighter)
    _PREC_EQUALITY: int = 1
    _PREC_COMPARE: int = 2
    _PREC_SUM: int = 3
    _PREC_PRODUCT: int = 4
    _PREC_UNARY: int = 5
    _PREC_POSTFIX: int = 6
    _PREC_PRIMARY: int = 7

    _BIN_PREC: dict[str, int] = {
        "==": _PREC_EQUALITY,
        "!=": _PREC_EQUALITY,
        ">": _PREC_COMPARE,
        ">=": _PREC_COMPARE,
        "<": _PREC_COMPARE,
        "<=": _PREC_COMPARE,
        "+": _PREC_SUM,
        "-": _PREC_SUM,
        "*": _PREC_PRODUCT,
        "/": _PREC_PRODUCT,
    }

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._indent_level: int = 0

    # ── Public ──────────────────────────────────────────────

    def emit_program(self, program: Block) -> str:
        self._lines = []
        self._indent_level = 0
        for stmt in program.body:
            self._emit_stmt(stmt)
        text = "\n".join(self._lines)
        if text == "":
            return ""
        return text + "\n"

    # ── Lines / Blocks ──────────────────────────────────────

    def _emit_line(self, line: str) -> None:
        self._lines.append(self._INDENT * self._indent_level + line)

    def _emit_stmt_block(self, stmts: list[Node]) -> None:
        self._indent_level += 1
        for stmt in stmts:
            self._emit_stmt(stmt)
        self._indent_level -= 1

    # ── Stmts ───────────────────────────────────────────────

    def _emit_stmt(self, stmt: Node) -> None:
        if isinstance(stmt, Expr):
            self._emit_line(self._render_expr(stmt, self._PREC_EQUALITY))
            return
        if isinstance(stmt, Assign):
            # The value may be a multi-line statement; prefix its first line.
            start = len(self._lines)
            self._emit_stmt(stmt.value)
            first = self._lines[start]
            indent = self._INDENT * self._indent_level
            self._lines[start] = indent + stmt.name + " = " + first[len(indent) :]
            return
        if isinstance(stmt, Return):
            self._emit_line(
                "return " + self._render_expr(stmt.value, self._PREC_EQUALITY)
            )
            return
        if isinstance(stmt, FnDecl):
            self._emit_line("fn " + stmt.name + "(" + ", ".join(stmt.params) + ") {")
            self._emit_stmt_block(stmt.body)
            self._emit_line("}")
            return
        if isinstance(stmt, If):
            self._emit_if_chain(stmt)
            return
        if isinstance(stmt, While):
            self._emit_line(
                "while " + self._render_expr(stmt.cond, self._PREC_EQUALITY) + " {"
            )
            self._emit_stmt_block(stmt.body)
            self._emit_line("}")
            return
        if isinstance(stmt, For):
            low = self._render_expr(stmt.low, self._PREC_EQUALITY)
            high = self._render_expr(stmt.high, self._PREC_EQUALITY)
            self._emit_line(f"for {stmt.var} in [{low}, {high}] {{")
            self._emit_stmt_block(stmt.body)
            self._emit_line("}")
            return
        if isinstance(stmt, Block):
            for inner in stmt.body:
                self._emit_stmt(inner)
            return
        raise TypeError("unhandled stmt type")

    def _emit_if_chain(self, stmt: If) -> None:
        branches: list[tuple[Expr, list[Node]]] = []
        final_else: list[Node] | None = None

        current: If | None = stmt
        while current is not None:
            branches.append((current.cond, current.then_body))
            else_body = current.else_body
            if (
                else_body is not None
                and len(else_body) == 1
                and isinstance(else_body[0], If)
            ):
                current = else_body[0]
                continue
            final_else = else_body
            current = None

        first_cond, first_body = branches[0]
        self._emit_line(
            "if " + self._render_expr(first_cond, self._PREC_EQUALITY) + " {"
        )
        self._emit_stmt_block(first_body)

        i = 1
        while i < len(branches):
            cond, body = branches[i]
            self._emit_line(
                "} else if " + self._render_expr(cond, self._PREC_EQUALITY) + " {"
            )
            self._emit_stmt_block(body)
            i += 1

        if final_else is not None:
            self._emit_line("} else {")
            self._emit_stmt_block(final_else)
        self._emit_line("}")

    # ── Exprs ───────────────────────────────────────────────

    def _expr_prec(self, expr: Expr) -> int:
        if isinstance(expr, BinaryOp):
            if expr.op not in self._BIN_PREC:
                raise ValueError(f"unknown binary operator: {expr.op}")
            return self._BIN_PREC[expr.op]
        if isinstance(expr, UnaryOp):
            return self._PREC_UNARY
        if isinstance(expr, (MethodCall, ExprMethodCall)):
            return self._PREC_POSTFIX
        return self._PREC_PRIMARY

    def _render_expr(self, expr: Expr, parent_prec: int, side: str = "") -> str:
        prec = self._expr_prec(expr)
        text = self._render_expr_inner(expr)

        # All binary tiers are left-associative: a right operand at the same
        # tier needs parens to keep its grouping.
        need_parens = prec < parent_prec or (
            prec == parent_prec and side == "right" and prec < self._PREC_UNARY
        )
        if need_parens:
            return f"({text})"
        return text

    def _render_expr_inner(self, expr: Expr) -> str:
        if isinstance(expr, IntLit):
            return str(expr.value)
        if isinstance(expr, FloatLit):
            return render_float(expr.value)
        if isinstance(expr, StringLit):
            if '"' in expr.value or "\n" in expr.value:
                raise ValueError("string literal cannot contain quotes or newlines")
            return '"' + expr.value + '"'
        if isinstance(expr, BoolLit):
            return "true" if expr.value else "false"
        if isinstance(expr, Var):
            return expr.name
        if isinstance(expr, UnaryOp):
            operand = self._render_expr(expr.operand, self._PREC_UNARY, "right")
            return f"{expr.op}{operand}"
        if isinstance(expr, BinaryOp):
            op_prec = self._BIN_PREC[expr.op]
            left = self._render_expr(expr.left, op_prec, "left")
            right = self._render_expr(expr.right, op_prec, "right")
            return f"{left} {expr.op} {right}"
        if isinstance(expr, Call):
            return f"{expr.name}({self._render_args(expr.args)})"
        if isinstance(expr, MethodCall):
            return f"{expr.receiver}.{expr.method}({self._render_args(expr.args)})"
        if isinstance(expr, ExprMethodCall):
            # A bare name receiver would re-parse as MethodCall.
            if isinstance(expr.receiver, Var):
                obj = f"({expr.receiver.name})"
            else:
                obj = self._render_expr(expr.receiver, self._PREC_POSTFIX, "left")
            return f"{obj}.{expr.method}({self._render_args(expr.args)})"
        raise TypeError("unhandled expr type")

    def _render_args(self, args: list[Expr]) -> str:
        parts: list[str] = []
        for a in args:
            parts.append(self._render_expr(a, self._PREC_EQUALITY))
        return ", ".join(parts)
