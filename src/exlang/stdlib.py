"""Ex standard library — std function and method repositories.

A repository groups related callables. The interpreter never sees
repositories, only the flat registries built from them by `build_functions`
and `build_methods`.
"""

from __future__ import annotations

import math
import re
import sys
from typing import IO, Iterable

from .runtime import (
    INT_MAX,
    INT_MIN,
    StdError,
    StdFunction,
    StdMethod,
    Value,
    VFloat,
    VInt,
    VString,
)

__all__ = [
    "BoolMethods",
    "FloatMethods",
    "FunctionRepository",
    "IOFunctions",
    "IntMethods",
    "MethodRepository",
    "StdError",
    "StringMethods",
    "build_functions",
    "build_methods",
    "default_functions",
    "default_methods",
]


# ============================================================
# Repository interfaces
# ============================================================


class FunctionRepository:
    """A named group of std functions."""

    def functions(self) -> dict[str, StdFunction]:
        raise NotImplementedError


class MethodRepository:
    """Std methods for one value kind."""

    kind: str = ""

    def methods(self) -> dict[str, StdMethod]:
        raise NotImplementedError


def build_functions(repos: Iterable[FunctionRepository]) -> dict[str, StdFunction]:
    """Merge function repositories; the last registration of a name wins."""
    out: dict[str, StdFunction] = {}
    for repo in repos:
        out.update(repo.functions())
    return out


def build_methods(
    repos: Iterable[MethodRepository],
) -> dict[str, dict[str, StdMethod]]:
    """Merge method repositories per kind; the last registration wins."""
    out: dict[str, dict[str, StdMethod]] = {}
    for repo in repos:
        out.setdefault(repo.kind, {}).update(repo.methods())
    return out


_INT_TEXT = re.compile(r"[+-]?[0-9]+")

_FLOAT_TEXT = re.compile(
    r"[+-]?(inf|infinity|nan|([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?)",
    re.IGNORECASE,
)


def _expect_args(name: str, args: list[Value], n: int) -> None:
    if len(args) != n:
        raise StdError(f"{name} expects {n} argument(s), got {len(args)}")


# ============================================================
# Functions
# ============================================================


class IOFunctions(FunctionRepository):
    """write, writeln and read over a pair of text streams."""

    def __init__(self, stdout: IO[str] | None = None, stdin: IO[str] | None = None):
        self.stdout = stdout
        self.stdin = stdin

    def _out(self) -> IO[str]:
        return self.stdout if self.stdout is not None else sys.stdout

    def _in(self) -> IO[str]:
        return self.stdin if self.stdin is not None else sys.stdin

    def functions(self) -> dict[str, StdFunction]:
        return {
            "write": self.write,
            "writeln": self.writeln,
            "read": self.read,
        }

    def write(self, args: list[Value]) -> Value | None:
        out = self._out()
        for arg in args:
            out.write(arg.to_string())
        return None

    def writeln(self, args: list[Value]) -> Value | None:
        self.write(args)
        self._out().write("\n")
        return None

    def read(self, args: list[Value]) -> Value | None:
        if len(args) > 1:
            raise StdError(f"read expects at most 1 argument, got {len(args)}")
        if args:
            out = self._out()
            out.write(args[0].to_string())
            out.flush()
        line = self._in().readline()
        if line == "":
            raise StdError("end of input")
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return VString(line)


# ============================================================
# Methods
# ============================================================


class IntMethods(MethodRepository):
    kind = "Integer"

    def methods(self) -> dict[str, StdMethod]:
        return {
            "pow": _int_pow,
            "to_float": _int_to_float,
            "to_string": _to_string,
        }


class FloatMethods(MethodRepository):
    kind = "Float"

    def methods(self) -> dict[str, StdMethod]:
        return {
            "to_int": _float_to_int,
            "to_string": _to_string,
        }


class StringMethods(MethodRepository):
    kind = "String"

    def methods(self) -> dict[str, StdMethod]:
        return {
            "to_int": _str_to_int,
            "to_float": _str_to_float,
            "len": _str_len,
        }


class BoolMethods(MethodRepository):
    kind = "Bool"

    def methods(self) -> dict[str, StdMethod]:
        return {
            "to_string": _to_string,
        }


def _to_string(this: Value, args: list[Value]) -> Value | None:
    _expect_args("to_string", args, 0)
    return VString(this.to_string())


def _int_pow(this: Value, args: list[Value]) -> Value | None:
    _expect_args("pow", args, 1)
    exp = args[0]
    if not isinstance(this, VInt) or not isinstance(exp, VInt):
        raise StdError(f"pow expects Integer, got {exp.kind}")
    if exp.value < 0:
        raise StdError("pow exponent must not be negative")
    base = this.value
    if abs(base) > 1 and exp.value > 64:
        raise StdError("integer overflow")
    result = base**exp.value
    if result < INT_MIN or result > INT_MAX:
        raise StdError("integer overflow")
    return VInt(result)


def _int_to_float(this: Value, args: list[Value]) -> Value | None:
    _expect_args("to_float", args, 0)
    assert isinstance(this, VInt)
    return VFloat(float(this.value))


def _float_to_int(this: Value, args: list[Value]) -> Value | None:
    _expect_args("to_int", args, 0)
    assert isinstance(this, VFloat)
    if not math.isfinite(this.value):
        raise StdError(f"cannot convert {this.to_string()} to int")
    i = int(this.value)
    if i < INT_MIN or i > INT_MAX:
        raise StdError("integer overflow")
    return VInt(i)


def _str_to_int(this: Value, args: list[Value]) -> Value | None:
    _expect_args("to_int", args, 0)
    assert isinstance(this, VString)
    if _INT_TEXT.fullmatch(this.value) is None:
        raise StdError(f"cannot convert '{this.value}' to int")
    if len(this.value.lstrip("+-").lstrip("0")) > 19:
        raise StdError(f"cannot convert '{this.value}' to int")
    i = int(this.value)
    if i < INT_MIN or i > INT_MAX:
        raise StdError(f"cannot convert '{this.value}' to int")
    return VInt(i)


def _str_to_float(this: Value, args: list[Value]) -> Value | None:
    _expect_args("to_float", args, 0)
    assert isinstance(this, VString)
    if _FLOAT_TEXT.fullmatch(this.value) is None:
        raise StdError(f"cannot convert '{this.value}' to float")
    return VFloat(float(this.value))


def _str_len(this: Value, args: list[Value]) -> Value | None:
    _expect_args("len", args, 0)
    assert isinstance(this, VString)
    return VInt(len(this.value))


# ============================================================
# Defaults
# ============================================================


def default_functions(
    stdout: IO[str] | None = None, stdin: IO[str] | None = None
) -> dict[str, StdFunction]:
    """Std function registry on the given streams (process streams if None)."""
    return build_functions([IOFunctions(stdout, stdin)])


def default_methods() -> dict[str, dict[str, StdMethod]]:
    return build_methods([IntMethods(), FloatMethods(), StringMethods(), BoolMethods()])
