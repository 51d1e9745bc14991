"""Std library tests."""

import io

import pytest

from exlang import run
from exlang.runtime import ExRuntimeFault, VBool, VFloat, VInt, VString
from exlang.stdlib import (
    BoolMethods,
    FunctionRepository,
    IntMethods,
    IOFunctions,
    MethodRepository,
    StdError,
    StringMethods,
    build_functions,
    build_methods,
    default_functions,
    default_methods,
)


class _Const(FunctionRepository):
    def __init__(self, name: str, value):
        self.name = name
        self.value = value

    def functions(self):
        return {self.name: lambda args: self.value}


class _Shout(MethodRepository):
    kind = "String"

    def methods(self):
        return {"len": lambda this, args: VInt(-1), "shout": lambda this, args: VString(this.value.upper())}


def _method(kind: str, name: str):
    return default_methods()[kind][name]


# ---- Registries ------------------------------------------------------------


def test_build_functions_last_registration_wins():
    table = build_functions([_Const("f", VInt(1)), _Const("g", VInt(2)), _Const("f", VInt(3))])
    assert sorted(table) == ["f", "g"]
    assert table["f"]([]) == VInt(3)


def test_build_methods_merges_per_kind():
    table = build_methods([StringMethods(), _Shout(), IntMethods()])
    assert sorted(table) == ["Integer", "String"]
    assert table["String"]["len"](VString("abc"), []) == VInt(-1)
    assert table["String"]["shout"](VString("abc"), []) == VString("ABC")
    assert "to_int" in table["String"]


def test_default_registries():
    assert sorted(default_functions()) == ["read", "write", "writeln"]
    methods = default_methods()
    assert sorted(methods) == ["Bool", "Float", "Integer", "String"]
    assert sorted(methods["Integer"]) == ["pow", "to_float", "to_string"]
    assert sorted(methods["String"]) == ["len", "to_float", "to_int"]


def test_repository_interfaces_are_abstract():
    with pytest.raises(NotImplementedError):
        FunctionRepository().functions()
    with pytest.raises(NotImplementedError):
        MethodRepository().methods()


# ---- I/O -------------------------------------------------------------------


def test_write_has_no_separator_or_newline():
    out = io.StringIO()
    IOFunctions(out).write([VString("a"), VInt(1), VFloat(2.0), VBool(True)])
    assert out.getvalue() == "a12true"


def test_writeln_appends_newline():
    out = io.StringIO()
    io_fns = IOFunctions(out)
    io_fns.writeln([VString("x"), VFloat(0.5)])
    io_fns.writeln([])
    assert out.getvalue() == "x0.5\n\n"


def test_read_strips_line_terminator():
    out = io.StringIO()
    io_fns = IOFunctions(out, io.StringIO("first\r\nsecond\n"))
    assert io_fns.read([VString("> ")]) == VString("first")
    assert io_fns.read([]) == VString("second")
    assert out.getvalue() == "> "


def test_read_at_end_of_input():
    with pytest.raises(StdError, match="end of input"):
        IOFunctions(io.StringIO(), io.StringIO("")).read([])


def test_read_from_program():
    out = io.StringIO()
    run('name = read()\nwriteln("hi " + name)', stdout=out, stdin=io.StringIO("ex\n"))
    assert out.getvalue() == "hi ex\n"


def test_read_too_many_args():
    with pytest.raises(StdError):
        IOFunctions(io.StringIO(), io.StringIO("x\n")).read([VString("a"), VString("b")])


# ---- Integer ---------------------------------------------------------------


def test_int_pow():
    pow_ = _method("Integer", "pow")
    assert pow_(VInt(2), [VInt(10)]) == VInt(1024)
    assert pow_(VInt(-3), [VInt(3)]) == VInt(-27)
    assert pow_(VInt(5), [VInt(0)]) == VInt(1)
    assert pow_(VInt(1), [VInt(1000)]) == VInt(1)


@pytest.mark.parametrize(
    "base,args,message",
    [
        (VInt(2), [VInt(-1)], "negative"),
        (VInt(2), [VInt(63)], "overflow"),
        (VInt(2), [VInt(1000000)], "overflow"),
        (VInt(2), [VFloat(2.0)], "expects Integer"),
        (VInt(2), [], "expects 1 argument"),
    ],
)
def test_int_pow_errors(base, args, message):
    with pytest.raises(StdError, match=message):
        _method("Integer", "pow")(base, args)


def test_int_conversions():
    assert _method("Integer", "to_float")(VInt(3), []) == VFloat(3.0)
    assert _method("Integer", "to_string")(VInt(-3), []) == VString("-3")


# ---- Float -----------------------------------------------------------------


def test_float_to_int_truncates():
    to_int = _method("Float", "to_int")
    assert to_int(VFloat(2.9), []) == VInt(2)
    assert to_int(VFloat(-2.9), []) == VInt(-2)


def test_float_to_int_rejects_non_finite():
    with pytest.raises(StdError):
        _method("Float", "to_int")(VFloat(float("nan")), [])
    with pytest.raises(StdError):
        _method("Float", "to_int")(VFloat(float("inf")), [])


def test_float_to_string():
    assert _method("Float", "to_string")(VFloat(4.0), []) == VString("4")
    assert _method("Float", "to_string")(VFloat(4.25), []) == VString("4.25")


# ---- String ----------------------------------------------------------------


def test_string_to_int():
    assert _method("String", "to_int")(VString("-17"), []) == VInt(-17)
    with pytest.raises(StdError, match="cannot convert 'x1' to int"):
        _method("String", "to_int")(VString("x1"), [])
    with pytest.raises(StdError):
        _method("String", "to_int")(VString("99999999999999999999"), [])


def test_string_to_float():
    assert _method("String", "to_float")(VString("2.5"), []) == VFloat(2.5)
    with pytest.raises(StdError, match="to float"):
        _method("String", "to_float")(VString("two"), [])


def test_string_len():
    assert _method("String", "len")(VString("héllo"), []) == VInt(5)


def test_bool_to_string():
    assert BoolMethods().methods()["to_string"](VBool(False), []) == VString("false")


def test_method_arity_error_in_program():
    with pytest.raises(ExRuntimeFault, match="error in method len"):
        run('"abc".len(1)', stdout=io.StringIO())


@pytest.mark.parametrize("text", ["1_000", " 12", "12 ", "١٢", "+", "", "1.5"])
def test_string_to_int_is_strict(text: str):
    with pytest.raises(StdError, match="to int"):
        _method("String", "to_int")(VString(text), [])


def test_string_to_int_accepts_sign_and_leading_zeros():
    to_int = _method("String", "to_int")
    assert to_int(VString("+7"), []) == VInt(7)
    assert to_int(VString("-0009"), []) == VInt(-9)
    assert to_int(VString("-9223372036854775808"), []) == VInt(-(2**63))


@pytest.mark.parametrize("text", ["1_000.5", " 2.5", "2.5 ", "١.٥", "e5", "."])
def test_string_to_float_is_strict(text: str):
    with pytest.raises(StdError, match="to float"):
        _method("String", "to_float")(VString(text), [])


def test_string_to_float_forms():
    to_float = _method("String", "to_float")
    assert to_float(VString("1e3"), []) == VFloat(1000.0)
    assert to_float(VString("-.5"), []) == VFloat(-0.5)
    assert to_float(VString("inf"), []) == VFloat(float("inf"))
