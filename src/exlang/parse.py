"""Ex parser — recursive descent, one method per grammar production."""

from __future__ import annotations

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
    Pos,
    Return,
    StringLit,
    UnaryOp,
    Var,
    While,
)
from .tokens import (
    TK_FLOAT,
    TK_INT,
    TK_NAME,
    TK_NEWLINE,
    TK_STRING,
    Token,
    describe_kind,
)

TK_EOF = "EOF"

EQUALITY_OPS: set[str] = {"==", "!="}

COMPARE_OPS: set[str] = {">", ">=", "<", "<="}


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Parser:
    """Recursive descent parser for Ex."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        if tokens:
            last = tokens[len(tokens) - 1]
            self._eof = Token(TK_EOF, "", last.line, last.col)
        else:
            self._eof = Token(TK_EOF, "", 1, 1)

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        if self.pos >= len(self.tokens):
            return self._eof
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self._eof
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.current()
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, type_: str) -> bool:
        return self.current().type == type_

    def at_end(self) -> bool:
        return self.current().type == TK_EOF

    def expect(self, type_: str) -> Token:
        """Consume a token of the given kind; payloads are not compared."""
        tok = self.current()
        if tok.type != type_:
            raise self.error(
                "expected " + describe_kind(type_) + ", found " + self._found(tok)
            )
        return self.advance()

    def expect_name(self) -> Token:
        return self.expect(TK_NAME)

    def skip_newlines(self) -> None:
        while self.at(TK_NEWLINE):
            self.advance()

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def _found(self, tok: Token) -> str:
        if tok.type == TK_EOF:
            return "end of input"
        return describe_kind(tok.type)

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Block:
        pos = self._pos()
        stmts: list[Node] = []
        while True:
            self.skip_newlines()
            if self.at_end():
                break
            try:
                stmts.append(self.parse_stmt())
            except RecursionError:
                raise self.error("expression nested too deeply") from None
        return Block(pos, stmts)

    # ── Statements ───────────────────────────────────────────

    def parse_stmt(self) -> Node:
        tok = self.current()
        if tok.type == TK_NAME and self.peek(1).type == "=":
            return self.parse_assign()
        if tok.type == "fn":
            return self.parse_fn_decl()
        if tok.type == "while":
            return self.parse_while_stmt()
        if tok.type == "for":
            return self.parse_for_stmt()
        if tok.type == "if":
            return self.parse_if_stmt()
        if tok.type == "return":
            return self.parse_return_stmt()
        if tok.type == TK_EOF:
            raise self.error("expected statement, found end of input")
        return self.parse_expr()

    def parse_assign(self) -> Assign:
        """Assign = NAME '=' Statement"""
        pos = self._pos()
        name_tok = self.expect_name()
        self.expect("=")
        value = self.parse_stmt()
        return Assign(pos, str(name_tok.value), value)

    def parse_fn_decl(self) -> FnDecl:
        pos = self._pos()
        self.expect("fn")
        name_tok = self.expect_name()
        self.expect("(")
        params = self.parse_param_list()
        self.expect(")")
        body = self.parse_block()
        return FnDecl(pos, str(name_tok.value), params, body)

    def parse_param_list(self) -> list[str]:
        params: list[str] = []
        if self.at(")"):
            return params
        params.append(self._parse_param())
        while self.at(","):
            self.advance()
            params.append(self._parse_param())
        return params

    def _parse_param(self) -> str:
        tok = self.current()
        if tok.type != TK_NAME:
            raise self.error(
                "expected parameter name, found " + self._found(tok)
            )
        self.advance()
        return str(tok.value)

    def parse_block(self) -> list[Node]:
        """Block = '{' NEWLINE* ( Statement NEWLINE* )* '}'"""
        self.expect("{")
        self.skip_newlines()
        stmts: list[Node] = []
        while not self.at("}"):
            if self.at_end():
                raise self.error("expected '}', found end of input")
            stmts.append(self.parse_stmt())
            self.skip_newlines()
        self.expect("}")
        return stmts

    def parse_if_stmt(self) -> If:
        pos = self._pos()
        self.expect("if")
        cond = self.parse_expr()
        then_body = self.parse_block()
        else_body: list[Node] | None = None
        if self._else_follows():
            self.skip_newlines()
            self.advance()
            if self.at("if"):
                else_body = [self.parse_if_stmt()]
            else:
                else_body = self.parse_block()
        return If(pos, cond, then_body, else_body)

    def _else_follows(self) -> bool:
        """True if the next non-NEWLINE token is 'else'."""
        offset = 0
        while self.peek(offset).type == TK_NEWLINE:
            offset += 1
        return self.peek(offset).type == "else"

    def parse_while_stmt(self) -> While:
        pos = self._pos()
        self.expect("while")
        cond = self.parse_expr()
        body = self.parse_block()
        return While(pos, cond, body)

    def parse_for_stmt(self) -> For:
        """For = 'for' NAME 'in' '[' Expr ',' Expr ']' Block"""
        pos = self._pos()
        self.expect("for")
        name_tok = self.expect_name()
        self.expect("in")
        self.expect("[")
        low = self.parse_expr()
        self.expect(",")
        high = self.parse_expr()
        self.expect("]")
        body = self.parse_block()
        return For(pos, str(name_tok.value), low, high, body)

    def parse_return_stmt(self) -> Return:
        pos = self._pos()
        self.expect("return")
        value = self.parse_expr()
        return Return(pos, value)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        return self.parse_equality()

    def parse_equality(self) -> Expr:
        """Equality = Compare ( ( '==' | '!=' ) Compare )*"""
        left = self.parse_compare()
        while self.current().type in EQUALITY_OPS:
            op = self.advance().type
            right = self.parse_compare()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_compare(self) -> Expr:
        """Compare = Sum ( ( '>' | '>=' | '<' | '<=' ) Sum )*"""
        left = self.parse_sum()
        while self.current().type in COMPARE_OPS:
            op = self.advance().type
            right = self.parse_sum()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_sum(self) -> Expr:
        """Sum = Product ( ( '+' | '-' ) Product )*"""
        left = self.parse_product()
        while self.at("+") or self.at("-"):
            op = self.advance().type
            right = self.parse_product()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_product(self) -> Expr:
        """Product = Unary ( ( '*' | '/' ) Unary )*"""
        left = self.parse_unary()
        while self.at("*") or self.at("/"):
            op = self.advance().type
            right = self.parse_unary()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_unary(self) -> Expr:
        """Unary = ( '+' | '-' ) Unary | Postfix"""
        if self.at("+") or self.at("-"):
            pos = self._pos()
            op = self.advance().type
            operand = self.parse_unary()
            return UnaryOp(pos, op, operand)
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """Postfix = Primary ( '.' NAME '(' ArgList ')' )*"""
        bare_name = self.at(TK_NAME) and self.peek(1).type != "("
        expr = self.parse_primary()
        while self.at("."):
            self.advance()
            method_tok = self.current()
            if method_tok.type != TK_NAME:
                raise self.error(
                    "expected method name after '.', found " + self._found(method_tok)
                )
            self.advance()
            self.expect("(")
            args = self.parse_arg_list()
            self.expect(")")
            if bare_name and isinstance(expr, Var):
                expr = MethodCall(expr.pos, expr.name, str(method_tok.value), args)
            else:
                expr = ExprMethodCall(expr.pos, expr, str(method_tok.value), args)
            bare_name = False
        return expr

    def parse_arg_list(self) -> list[Expr]:
        """ArgList = ( Expr ( ',' Expr )* )?"""
        args: list[Expr] = []
        if self.at(")"):
            return args
        args.append(self._parse_arg())
        while self.at(","):
            self.advance()
            args.append(self._parse_arg())
        return args

    def _parse_arg(self) -> Expr:
        tok = self.current()
        if tok.type in (")", ",", TK_NEWLINE, TK_EOF):
            raise self.error("expected argument, found " + self._found(tok))
        return self.parse_expr()

    def parse_primary(self) -> Expr:
        """Parse a primary expression."""
        tok = self.current()
        pos = self._pos()

        # Literals
        if tok.type == TK_INT:
            self.advance()
            return IntLit(pos, int(tok.value))
        if tok.type == TK_FLOAT:
            self.advance()
            return FloatLit(pos, float(tok.value))
        if tok.type == TK_STRING:
            self.advance()
            return StringLit(pos, str(tok.value))
        if tok.type == "true":
            self.advance()
            return BoolLit(pos, True)
        if tok.type == "false":
            self.advance()
            return BoolLit(pos, False)

        # Call or variable, by one token of lookahead
        if tok.type == TK_NAME:
            self.advance()
            if self.at("("):
                self.advance()
                args = self.parse_arg_list()
                self.expect(")")
                return Call(pos, str(tok.value), args)
            return Var(pos, str(tok.value))

        # Parenthesized expression
        if tok.type == "(":
            self.advance()
            inner = self.parse_expr()
            self.expect(")")
            return inner

        raise self.error("expected expression, found " + self._found(tok))


def parse_tokens(tokens: list[Token]) -> Block:
    """Parse a token list into a program Block."""
    return Parser(tokens).parse_program()
