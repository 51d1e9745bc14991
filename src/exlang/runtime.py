"""Ex runtime — values, scopes, and the tree-walking interpreter.

Node evaluations talk to each other through the value channel: every node
either pushes exactly one value or pushes nothing, and parents pop what their
children pushed.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import sys
from typing import Callable, Mapping

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

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

# Upper bound on Python frames used per nested user call.
_FRAMES_PER_CALL = 16

INT_MIN = -(2**63)
INT_MAX = 2**63 - 1


# ============================================================
# Diagnostics
# ============================================================


class ExError(Exception):
    """Base error for Ex evaluation."""

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {pos.line} col {pos.col}")
        self.msg = msg
        self.pos = pos


class ExTypeError(ExError):
    """Operand, condition or receiver of the wrong kind."""


class ExNameError(ExError):
    """Unknown variable, function, receiver or method."""


class ExRuntimeFault(ExError):
    """Runtime fault (arity mismatch, std failure, overflow, etc.)."""


class ExRecursionError(ExRuntimeFault):
    """Call depth limit or interpreter stack exhausted."""


class StdError(Exception):
    """Raised by std functions and methods to report a failure."""


# ============================================================
# Values
# ============================================================


class Value:
    """A runtime value; `kind` is its discriminant."""

    kind: str = ""

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class VString(Value):
    value: str

    kind = "String"

    def to_string(self) -> str:
        return self.value


@dataclass(frozen=True)
class VInt(Value):
    value: int

    kind = "Integer"

    def to_string(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class VFloat(Value):
    value: float

    kind = "Float"

    def to_string(self) -> str:
        return format_float(self.value)

    def __eq__(self, other: object) -> bool:
        # Structural: NaN equals NaN, so channel/scope contents compare sanely.
        if not isinstance(other, VFloat):
            return False
        if math.isnan(self.value) and math.isnan(other.value):
            return True
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(("float", self.value))


@dataclass(frozen=True)
class VBool(Value):
    value: bool

    kind = "Bool"

    def to_string(self) -> str:
        return "true" if self.value else "false"


def format_float(f: float) -> str:
    """Display text of a float; integral values drop the trailing '.0'."""
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "inf" if f > 0 else "-inf"
    if f.is_integer():
        return str(int(f))
    return repr(f)


def checked_int(i: int, pos: Pos | None = None) -> VInt:
    """Wrap an int result, enforcing the 64-bit signed range."""
    if i < INT_MIN or i > INT_MAX:
        raise ExRuntimeFault("integer overflow", pos)
    return VInt(i)


StdFunction = Callable[[list[Value]], "Value | None"]
StdMethod = Callable[[Value, list[Value]], "Value | None"]


# ============================================================
# Control flow signals (internal)
# ============================================================


class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: Value


# ============================================================
# Scopes
# ============================================================


class ScopeStack:
    """Stack of name -> value scopes; index 0 is the global scope."""

    def __init__(self) -> None:
        self._scopes: list[dict[str, Value]] = [{}]

    def __len__(self) -> int:
        return len(self._scopes)

    def push_scope(self) -> None:
        self._scopes.append({})

    def pop_scope(self) -> None:
        if len(self._scopes) == 1:
            raise RuntimeError("cannot pop the global scope")
        self._scopes.pop()

    @property
    def current(self) -> dict[str, Value]:
        return self._scopes[-1]

    @property
    def globals(self) -> dict[str, Value]:
        return self._scopes[0]

    def bind(self, name: str, value: Value) -> None:
        """Bind in the innermost scope, replacing any binding there."""
        self._scopes[-1][name] = value

    def get(self, name: str) -> Value | None:
        """Read from the innermost scope only."""
        return self._scopes[-1].get(name)


# ============================================================
# Interpreter
# ============================================================


class Interpreter:
    """Evaluates a parsed program against std function and method registries."""

    def __init__(
        self,
        functions: Mapping[str, StdFunction] | None = None,
        methods: Mapping[str, Mapping[str, StdMethod]] | None = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        if functions is None or methods is None:
            from .stdlib import default_functions, default_methods

            if functions is None:
                functions = default_functions()
            if methods is None:
                methods = default_methods()
        self.std_functions: dict[str, StdFunction] = dict(functions)
        self.std_methods: dict[str, dict[str, StdMethod]] = {
            kind: dict(table) for kind, table in methods.items()
        }
        self.max_depth = max_depth
        self.scopes = ScopeStack()
        self.values: list[Value] = []
        self.user_functions: dict[str, FnDecl] = {}
        self._depth = 0

    # ---- Running -----------------------------------------------------------

    def run(self, program: Block) -> Value | None:
        """Execute a program; returns the value left on top of the channel."""
        old_limit = sys.getrecursionlimit()
        needed = self.max_depth * _FRAMES_PER_CALL + 1000
        if old_limit < needed:
            sys.setrecursionlimit(needed)
        try:
            self._exec(program)
        except _Return as r:
            self.values.append(r.value)
        except RecursionError:
            raise ExRecursionError("interpreter stack exhausted", None) from None
        finally:
            sys.setrecursionlimit(old_limit)
        logger.debug("run finished with %d value(s) on the channel", len(self.values))
        if self.values:
            return self.values[-1]
        return None

    def get_var(self, name: str) -> Value | None:
        """Global variable lookup, for hosts inspecting state after a run."""
        return self.scopes.globals.get(name)

    # ---- Value channel -----------------------------------------------------

    def push(self, value: Value) -> None:
        self.values.append(value)

    def pop(self, what: str, pos: Pos | None) -> Value:
        if not self.values:
            raise ExRuntimeFault(f"expected a value for {what}", pos)
        return self.values.pop()

    def _truncate(self, depth: int) -> None:
        del self.values[depth:]

    # ---- Dispatch ----------------------------------------------------------

    def _exec(self, node: Node) -> None:
        if isinstance(node, IntLit):
            self.push(checked_int(node.value, node.pos))
            return
        if isinstance(node, FloatLit):
            self.push(VFloat(node.value))
            return
        if isinstance(node, StringLit):
            self.push(VString(node.value))
            return
        if isinstance(node, BoolLit):
            self.push(VBool(node.value))
            return

        if isinstance(node, Var):
            value = self.scopes.get(node.name)
            if value is None:
                raise ExNameError(f"unknown name '{node.name}'", node.pos)
            self.push(value)
            return

        if isinstance(node, UnaryOp):
            # -9223372036854775808 is only in range once negated.
            if node.op == "-" and isinstance(node.operand, IntLit):
                self.push(checked_int(-node.operand.value, node.pos))
                return
            self._exec(node.operand)
            self.push(self._eval_unary(node.op, self.pop("unary operand", node.pos), node.pos))
            return

        if isinstance(node, BinaryOp):
            self._exec(node.left)
            self._exec(node.right)
            right = self.pop("right operand", node.pos)
            left = self.pop("left operand", node.pos)
            self.push(self._eval_binary(node.op, left, right, pos=node.pos))
            return

        if isinstance(node, Assign):
            depth = len(self.values)
            self._exec(node.value)
            if len(self.values) <= depth:
                raise ExRuntimeFault(f"no value to assign to '{node.name}'", node.pos)
            self.scopes.bind(node.name, self.values.pop())
            return

        if isinstance(node, If):
            cond = self._eval_cond(node.cond, "if")
            if cond:
                self._exec_body(node.then_body)
            elif node.else_body is not None:
                self._exec_body(node.else_body)
            return

        if isinstance(node, While):
            while self._eval_cond(node.cond, "while"):
                depth = len(self.values)
                self._exec_body(node.body)
                self._truncate(depth)
            return

        if isinstance(node, For):
            self._exec_for(node)
            return

        if isinstance(node, FnDecl):
            if node.name in self.user_functions:
                logger.debug("redefining function %s", node.name)
            else:
                logger.debug("defining function %s/%d", node.name, len(node.params))
            self.user_functions[node.name] = node
            return

        if isinstance(node, Call):
            self._exec_call(node)
            return

        if isinstance(node, MethodCall):
            receiver = self.scopes.get(node.receiver)
            if receiver is None:
                raise ExNameError(
                    f"call method on unknown object '{node.receiver}'", node.pos
                )
            self._call_method(receiver, node.method, node.args, node.pos)
            return

        if isinstance(node, ExprMethodCall):
            self._exec(node.receiver)
            receiver = self.pop(f"method '{node.method}' receiver", node.pos)
            self._call_method(receiver, node.method, node.args, node.pos)
            return

        if isinstance(node, Return):
            self._exec(node.value)
            raise _Return(self.pop("return", node.pos))

        if isinstance(node, Block):
            self._exec_body(node.body)
            return

        raise TypeError(f"unhandled node type {type(node).__name__}")

    def _exec_body(self, stmts: list[Node]) -> None:
        for st in stmts:
            self._exec(st)

    def _eval_cond(self, cond: Expr, what: str) -> bool:
        self._exec(cond)
        value = self.pop(f"{what} condition", cond.pos)
        if not isinstance(value, VBool):
            raise ExTypeError(f"{what} condition must be Bool, got {value.kind}", cond.pos)
        return value.value

    # ---- Statements --------------------------------------------------------

    def _exec_for(self, node: For) -> None:
        self._exec(node.low)
        self._exec(node.high)
        high = self._to_int(self.pop("for upper bound", node.pos), node.high.pos)
        low = self._to_int(self.pop("for lower bound", node.pos), node.low.pos)
        i = low
        self.scopes.bind(node.var, VInt(i))
        while i < high:
            depth = len(self.values)
            self._exec_body(node.body)
            self._truncate(depth)
            i += 1
            self.scopes.bind(node.var, VInt(i))

    def _to_int(self, v: Value, pos: Pos) -> int:
        if isinstance(v, VInt):
            return v.value
        if isinstance(v, VFloat) and math.isfinite(v.value) and v.value.is_integer():
            return int(v.value)
        raise ExTypeError(f"for bound must be Integer, got {v.kind}", pos)

    # ---- Calls -------------------------------------------------------------

    def _eval_args(self, args: list[Expr], pos: Pos) -> list[Value]:
        depth = len(self.values)
        for arg in args:
            self._exec(arg)
            if len(self.values) <= depth:
                raise ExRuntimeFault("argument produced no value", arg.pos)
            depth = len(self.values)
        out: list[Value] = []
        for _ in args:
            out.append(self.pop("argument", pos))
        out.reverse()
        return out

    def _exec_call(self, call: Call) -> None:
        if call.name in self.std_functions:
            fn = self.std_functions[call.name]
            args = self._eval_args(call.args, call.pos)
            logger.debug("std call %s/%d", call.name, len(args))
            try:
                result = fn(args)
            except StdError as e:
                raise ExRuntimeFault(f"error in function {call.name}: {e}", call.pos) from e
            if result is not None:
                self.push(result)
            return
        if call.name in self.user_functions:
            self._call_user(self.user_functions[call.name], call)
            return
        raise ExNameError(f"function '{call.name}' not defined", call.pos)

    def _call_user(self, decl: FnDecl, call: Call) -> None:
        if len(call.args) != len(decl.params):
            raise ExRuntimeFault(
                f"function '{decl.name}' expects {len(decl.params)} argument(s), "
                f"got {len(call.args)}",
                call.pos,
            )
        if self._depth >= self.max_depth:
            raise ExRecursionError(
                f"maximum call depth {self.max_depth} exceeded in '{decl.name}'", call.pos
            )
        # Arguments are evaluated in the caller's scope.
        args = self._eval_args(call.args, call.pos)
        logger.debug("call %s/%d", decl.name, len(args))
        depth = len(self.values)
        result: Value | None = None
        self._depth += 1
        self.scopes.push_scope()
        try:
            for name, value in zip(decl.params, args):
                self.scopes.bind(name, value)
            self._exec_body(decl.body)
        except _Return as r:
            result = r.value
        finally:
            self.scopes.pop_scope()
            self._depth -= 1
        self._truncate(depth)
        if result is not None:
            self.push(result)

    def _call_method(
        self, receiver: Value, method: str, args: list[Expr], pos: Pos
    ) -> None:
        table = self.std_methods.get(receiver.kind)
        if table is None:
            raise ExTypeError(f"no methods for {receiver.kind}", pos)
        if method not in table:
            raise ExNameError(f"unknown method '{method}' for {receiver.kind}", pos)
        fn = table[method]
        arg_values = self._eval_args(args, pos)
        logger.debug("method call %s.%s/%d", receiver.kind, method, len(arg_values))
        try:
            result = fn(receiver, arg_values)
        except StdError as e:
            raise ExRuntimeFault(f"error in method {method}: {e}", pos) from e
        if result is not None:
            self.push(result)

    # ---- Operators ---------------------------------------------------------

    def _eval_unary(self, op: str, operand: Value, pos: Pos) -> Value:
        if isinstance(operand, VInt):
            if op == "+":
                return operand
            if op == "-":
                return checked_int(-operand.value, pos)
        if isinstance(operand, VFloat):
            if op == "+":
                return operand
            if op == "-":
                return VFloat(-operand.value)
        raise ExTypeError(f"unary '{op}' not supported for {operand.kind}", pos)

    def _eval_binary(self, op: str, left: Value, right: Value, *, pos: Pos) -> Value:
        if isinstance(left, VInt) and isinstance(right, VInt):
            a = left.value
            b = right.value
            if op == "+":
                return checked_int(a + b, pos)
            if op == "-":
                return checked_int(a - b, pos)
            if op == "*":
                return checked_int(a * b, pos)
            if op == "/":
                return VFloat(_float_div(float(a), float(b)))
            if op in _COMPARE:
                return VBool(_cmp(op, a, b))
        elif isinstance(left, VFloat) and isinstance(right, VFloat):
            x = left.value
            y = right.value
            if op == "+":
                return VFloat(x + y)
            if op == "-":
                return VFloat(x - y)
            if op == "*":
                return VFloat(x * y)
            if op == "/":
                return VFloat(_float_div(x, y))
            if op in _COMPARE:
                return VBool(_cmp(op, x, y))
        elif isinstance(left, VString) and isinstance(right, VString):
            if op == "+":
                return VString(left.value + right.value)
            if op == "==":
                return VBool(left.value == right.value)
            if op == "!=":
                return VBool(left.value != right.value)
        elif isinstance(left, VBool) and isinstance(right, VBool):
            if op == "==":
                return VBool(left.value == right.value)
            if op == "!=":
                return VBool(left.value != right.value)
        else:
            raise ExTypeError(
                f"binary '{op}' not supported for {left.kind} and {right.kind}", pos
            )
        raise ExTypeError(f"binary '{op}' not supported for {left.kind}", pos)


_COMPARE: set[str] = {"==", "!=", ">", ">=", "<", "<="}


def _cmp(op: str, a: object, b: object) -> bool:
    if op == "==":
        return a == b
    if op == "!=":
        return a != b
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    raise AssertionError(op)


def _float_div(x: float, y: float) -> float:
    """IEEE-754 division: x/0 is a signed infinity, 0/0 is NaN."""
    if y != 0.0:
        return x / y
    if x == 0.0 or math.isnan(x):
        return math.nan
    sign = math.copysign(1.0, x) * math.copysign(1.0, y)
    return math.copysign(math.inf, sign)
