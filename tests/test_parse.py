"""Parser tests."""

import pytest

from exlang import parse
from exlang.ast import (
    Assign,
    BinaryOp,
    Block,
    BoolLit,
    Call,
    ExprMethodCall,
    FloatLit,
    FnDecl,
    For,
    If,
    IntLit,
    MethodCall,
    Pos,
    Return,
    StringLit,
    UnaryOp,
    Var,
    While,
)
from exlang.parse import ParseError

P = Pos(0, 0)


def _stmt(source: str):
    program = parse(source)
    assert len(program.body) == 1, program.body
    return program.body[0]


def _int(i: int) -> IntLit:
    return IntLit(P, i)


def test_empty_program():
    assert parse("") == Block(P, [])
    assert parse("\n\n\n") == Block(P, [])


def test_multiplication_binds_tighter():
    assert _stmt("2 + 2 * 2") == BinaryOp(
        P, "+", _int(2), BinaryOp(P, "*", _int(2), _int(2))
    )


def test_binary_tiers_are_left_associative():
    assert _stmt("1 - 2 - 3") == BinaryOp(
        P, "-", BinaryOp(P, "-", _int(1), _int(2)), _int(3)
    )
    assert _stmt("8 / 4 / 2") == BinaryOp(
        P, "/", BinaryOp(P, "/", _int(8), _int(4)), _int(2)
    )


def test_parentheses_group():
    assert _stmt("(2 + 2) * 2") == BinaryOp(
        P, "*", BinaryOp(P, "+", _int(2), _int(2)), _int(2)
    )


def test_comparison_below_sum_equality_below_comparison():
    assert _stmt("1 + 1 < 3 == true") == BinaryOp(
        P,
        "==",
        BinaryOp(P, "<", BinaryOp(P, "+", _int(1), _int(1)), _int(3)),
        BoolLit(P, True),
    )


def test_unary_is_right_recursive():
    assert _stmt("- -x") == UnaryOp(P, "-", UnaryOp(P, "-", Var(P, "x")))
    assert _stmt("-2 * 3") == BinaryOp(P, "*", UnaryOp(P, "-", _int(2)), _int(3))


def test_literals():
    assert _stmt("1.5") == FloatLit(P, 1.5)
    assert _stmt('"hi"') == StringLit(P, "hi")
    assert _stmt("false") == BoolLit(P, False)


def test_assignment_rhs_is_a_statement():
    assert _stmt("a = b = 1") == Assign(P, "a", Assign(P, "b", _int(1)))
    stmt = _stmt("a = if c { 1 } else { 2 }")
    assert stmt == Assign(P, "a", If(P, Var(P, "c"), [_int(1)], [_int(2)]))


def test_call_inside_expression():
    assert _stmt("f(1, g()) + 2") == BinaryOp(
        P, "+", Call(P, "f", [_int(1), Call(P, "g", [])]), _int(2)
    )


def test_named_method_call():
    assert _stmt("x.pow(2)") == MethodCall(P, "x", "pow", [_int(2)])


def test_literal_and_parenthesized_receivers():
    assert _stmt("2.pow(3)") == ExprMethodCall(P, _int(2), "pow", [_int(3)])
    assert _stmt("(x).len()") == ExprMethodCall(P, Var(P, "x"), "len", [])
    assert _stmt("f().len()") == ExprMethodCall(P, Call(P, "f", []), "len", [])


def test_chained_method_calls():
    assert _stmt('"12".to_int().pow(2)') == ExprMethodCall(
        P, ExprMethodCall(P, StringLit(P, "12"), "to_int", []), "pow", [_int(2)]
    )
    assert _stmt("s.to_int().pow(2)") == ExprMethodCall(
        P, MethodCall(P, "s", "to_int", []), "pow", [_int(2)]
    )


def test_method_call_binds_tighter_than_unary():
    assert _stmt("-2.pow(2)") == UnaryOp(
        P, "-", ExprMethodCall(P, _int(2), "pow", [_int(2)])
    )


def test_function_definition():
    src = "fn add(a, b) {\n    return a + b\n}"
    assert _stmt(src) == FnDecl(
        P, "add", ["a", "b"], [Return(P, BinaryOp(P, "+", Var(P, "a"), Var(P, "b")))]
    )


def test_function_without_params():
    assert _stmt("fn f() {}") == FnDecl(P, "f", [], [])


def test_while_and_for():
    assert _stmt("while x < 3 { x = x + 1 }") == While(
        P,
        BinaryOp(P, "<", Var(P, "x"), _int(3)),
        [Assign(P, "x", BinaryOp(P, "+", Var(P, "x"), _int(1)))],
    )
    assert _stmt("for i in [0, n] {\n}") == For(P, "i", _int(0), Var(P, "n"), [])


def test_else_if_chain():
    src = "if a {\n  1\n} else if b {\n  2\n} else {\n  3\n}"
    assert _stmt(src) == If(
        P,
        Var(P, "a"),
        [_int(1)],
        [If(P, Var(P, "b"), [_int(2)], [_int(3)])],
    )


def test_else_on_a_later_line():
    src = "if a {\n  1\n}\nelse {\n  2\n}"
    assert _stmt(src) == If(P, Var(P, "a"), [_int(1)], [_int(2)])


def test_if_without_else_then_statement():
    program = parse("if a { 1 }\nb")
    assert program.body == [If(P, Var(P, "a"), [_int(1)], None), Var(P, "b")]


def test_positions_recorded():
    stmt = _stmt("\n  x = 1")
    assert (stmt.pos.line, stmt.pos.col) == (2, 3)


@pytest.mark.parametrize(
    "source,message",
    [
        ("fn f(a b) {}", "expected ')'"),
        ("fn f(a,) {}", "expected parameter name"),
        ("fn f(1) {}", "expected parameter name"),
        ("f(1,)", "expected argument"),
        ("f(1 2)", "expected ')'"),
        ("if a {", "found end of input"),
        ("(1 + 2", "expected ')'"),
        ("for i in [0 3] {}", "expected ','"),
        ("x.", "expected method name"),
        ("x = ", "expected expression"),
        ("return", "expected expression"),
        ("}", "expected expression"),
        ("while x\n{ }", "expected '{'"),
    ],
)
def test_parse_errors(source: str, message: str):
    with pytest.raises(ParseError) as exc:
        parse(source)
    assert message in str(exc.value)


def test_parse_error_position():
    with pytest.raises(ParseError) as exc:
        parse("a = 1\nfn (x) {}")
    assert exc.value.line == 2
    assert exc.value.col == 4


def test_deep_nesting_is_a_parse_error():
    depth = 3000
    with pytest.raises(ParseError, match="nested too deeply"):
        parse("x = " + "(" * depth + "1" + ")" * depth)
