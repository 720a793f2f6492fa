"""Standard numeric library: functions, constants and operations registered by name."""

from __future__ import annotations

import math
import random
from typing import Callable, Dict

from .types import Library, LibFunction, Number, NumericFn

_FUNCTIONS: Dict[str, LibFunction] = {}
_OPERATIONS: Dict[str, NumericFn] = {}

CONSTANTS: Dict[str, Number] = {
    "pi": math.pi,
    "e": math.e,
}


def register_stdlib(name: str, *, arity: int = 1):
    def dec(fn: NumericFn):
        _FUNCTIONS[name] = LibFunction(fn=fn, arity=arity)
        return fn

    return dec


def register_operation(opcode: str):
    def dec(fn: NumericFn):
        _OPERATIONS[opcode] = fn
        return fn

    return dec


def standard_library() -> Library:
    """Fresh copy of the standard library; callers may mutate their own instance."""
    return Library(dict(_FUNCTIONS), dict(CONSTANTS), dict(_OPERATIONS))


def _alias(name: str, fn: Callable[..., float], arity: int = 1) -> None:
    register_stdlib(name, arity=arity)(fn)


for _name in ("acos", "acosh", "asin", "asinh", "atan", "atanh",
              "cos", "cosh", "exp", "sin", "sinh", "sqrt", "tan", "tanh"):
    _alias(_name, getattr(math, _name))

_alias("abs", math.fabs)
_alias("ln", math.log)
_alias("pow", math.pow, arity=2)
_alias("hypot", math.hypot, arity=0)


@register_stdlib("ceil")
def std_ceil(x: float) -> float:
    return float(math.ceil(x))


@register_stdlib("floor")
def std_floor(x: float) -> float:
    return float(math.floor(x))


@register_stdlib("round")
def std_round(x: float) -> float:
    # half rounds up, not to even
    return float(math.floor(x + 0.5))


@register_stdlib("sign")
def std_sign(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return x


@register_stdlib("cbrt")
def std_cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


@register_stdlib("log_")
def std_log(x: float, base: float = 10.0) -> float:
    return math.log(x) / math.log(base)


@register_stdlib("max", arity=0)
def std_max(*args: float) -> float:
    if not args:
        return -math.inf
    return max(args)


@register_stdlib("min", arity=0)
def std_min(*args: float) -> float:
    if not args:
        return math.inf
    return min(args)


@register_stdlib("random", arity=0)
def std_random() -> float:
    return random.random()


@register_operation("pow")
def op_pow(base: float, exponent: float) -> float:
    return math.pow(base, exponent)


@register_operation("fac")
def op_factorial(x: float) -> float:
    try:
        if float(x).is_integer() and x >= 0:
            # 171! is past the largest float
            if x > 170:
                return math.inf
            return float(math.factorial(int(x)))
        return math.gamma(x + 1)
    except OverflowError:
        return math.inf
