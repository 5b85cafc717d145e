from __future__ import annotations

import inspect
import math
from functools import reduce
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from .exceptions import IndexOutOfRange, NotANumber
from .values import Numeric, as_numeric, from_int32, is_vector, power, to_int32, to_result, to_uint32


class Builtin:
    """A named builtin routine.

    ``vectorized`` builtins accept vectors natively (the caller still checks
    that vector arguments share one length); the rest are scalar routines
    that the call site maps elementwise. Calls follow ECMAScript arity rules:
    surplus arguments are dropped and missing required ones read as ``NaN``.
    """

    __slots__ = ("name", "fn", "vectorized", "required", "maximum")

    def __init__(
        self,
        name: str,
        fn: Callable[..., Any],
        *,
        arity: Optional[Tuple[int, Optional[int]]] = None,
        vectorized: bool = False,
    ):
        self.name = name
        self.fn = fn
        self.vectorized = vectorized
        self.required, self.maximum = arity if arity is not None else _arity(fn)

    def __call__(self, *args: Any) -> Any:
        if self.maximum is not None and len(args) > self.maximum:
            args = args[: self.maximum]
        if len(args) < self.required:
            args = args + (math.nan,) * (self.required - len(args))
        return self.fn(*args)

    def __repr__(self) -> str:
        return f"Builtin({self.name!r})"


def _arity(fn: Callable[..., Any]) -> Tuple[int, Optional[int]]:
    nin = getattr(fn, "nin", None)
    if nin is not None:
        return nin, nin
    required = 0
    maximum: Optional[int] = 0
    for param in inspect.signature(fn).parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            maximum = None
        elif maximum is not None:
            maximum += 1
            if param.default is param.empty:
                required += 1
    return required, maximum


def _size(value: Any, what: str = "size") -> int:
    if is_vector(value) or not math.isfinite(value) or value < 0 or value != int(value):
        raise IndexOutOfRange(f"Invalid vector {what}: {value!r}")
    return int(value)


def _scalar(value: Any, what: str) -> float:
    if is_vector(value):
        raise NotANumber(f"{what} must be a scalar")
    return float(value)


# ECMAScript Math routines ------------------------------------------------------


def js_round(x):
    r = np.floor(x)
    return np.where(np.subtract(x, r) >= 0.5, r + 1.0, r)


def fround(x): return np.asarray(x, dtype=np.float32).astype(np.float64)
def imul(a, b): return from_int32(to_int32(a) * to_int32(b))
def hypot(*args): return reduce(np.hypot, args, 0.0)
def js_max(*args): return reduce(np.maximum, args, -np.inf)
def js_min(*args): return reduce(np.minimum, args, np.inf)


def clz32(x):
    _, exponent = np.frexp(to_uint32(x).astype(np.float64))
    return (32 - exponent).astype(np.float64)


MATH_CONSTANTS: Dict[str, float] = {
    "E": math.e,
    "LN10": math.log(10),
    "LN2": math.log(2),
    "LOG10E": 1 / math.log(10),
    "LOG2E": 1 / math.log(2),
    "PI": math.pi,
    "SQRT1_2": math.sqrt(0.5),
    "SQRT2": math.sqrt(2),
}

MATH_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": np.abs,
    "acos": np.arccos,
    "acosh": np.arccosh,
    "asin": np.arcsin,
    "asinh": np.arcsinh,
    "atan": np.arctan,
    "atanh": np.arctanh,
    "atan2": np.arctan2,
    "cbrt": np.cbrt,
    "ceil": np.ceil,
    "clz32": clz32,
    "cos": np.cos,
    "cosh": np.cosh,
    "exp": np.exp,
    "expm1": np.expm1,
    "floor": np.floor,
    "fround": fround,
    "hypot": hypot,
    "imul": imul,
    "log": np.log,
    "log1p": np.log1p,
    "log10": np.log10,
    "log2": np.log2,
    "max": js_max,
    "min": js_min,
    "pow": power,
    "round": js_round,
    "sign": np.sign,
    "sin": np.sin,
    "sinh": np.sinh,
    "sqrt": np.sqrt,
    "tan": np.tan,
    "tanh": np.tanh,
    "trunc": np.trunc,
}


# Scalar extras ---------------------------------------------------------------


def mod(a, b):
    """Euclidean modulo: the result takes the sign of the divisor."""
    return np.fmod(np.fmod(a, b) + b, b)


def step(x): return np.greater_equal(x, 0).astype(np.float64)
def limit(x): return np.clip(x, -1.0, 1.0)
def is_finite(x): return np.isfinite(x).astype(np.float64)
def is_nan(x): return np.isnan(x).astype(np.float64)


EXTRA_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "isFinite": is_finite,
    "isNaN": is_nan,
    "mod": mod,
    "step": step,
    "limit": limit,
}

EXTRA_CONSTANTS: Dict[str, float] = {
    "TAU": 2 * math.pi,
    "Infinity": math.inf,
    "NaN": math.nan,
}


# Array construction ----------------------------------------------------------


def zeros(size): return np.zeros(_size(size))
def ones(size): return np.ones(_size(size))
def full(size, fill_value): return np.full(_size(size), _scalar(fill_value, "fill value"))


def zeros_like(other: Numeric):
    if not is_vector(other):
        return 0.0
    return np.zeros(other.shape[0])


def ones_like(other: Numeric):
    if not is_vector(other):
        return 1.0
    return np.ones(other.shape[0])


def full_like(other: Numeric, fill_value: Numeric):
    fill = _scalar(fill_value, "fill value")
    if not is_vector(other):
        return fill
    return np.full(other.shape[0], fill)


def arange(start, stop=None, step=None):
    """``arange(stop)`` or ``arange(start, stop[, step])``; length is ``floor((stop - start) / step)``."""
    if stop is None:
        start, stop = 0.0, start
    if step is None:
        step = 1.0
    span = (stop - start) / step if step else 0.0
    if not math.isfinite(span):
        raise IndexOutOfRange(f"Invalid arange bounds: start={start!r}, stop={stop!r}, step={step!r}")
    count = math.floor(span)
    return start + np.arange(max(count, 0), dtype=np.float64) * step


def linspace(start, stop, num=50.0):
    return np.linspace(start, stop, _size(num, "point count"))


VECTOR_ROUTINES: Dict[str, Callable[..., Any]] = {
    "zeros": zeros,
    "ones": ones,
    "full": full,
    "arange": arange,
    "linspace": linspace,
}

LIKE_ROUTINES: Dict[str, Callable[..., Any]] = {
    "zerosLike": zeros_like,
    "onesLike": ones_like,
    "fullLike": full_like,
}


def _make_random(rng: np.random.Generator) -> Callable[..., Numeric]:
    def random(size=None):
        if size is None:
            return float(rng.random())
        return rng.random(_size(size))

    return random


def build_globals(rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """Build a fresh builtin registry for one top-level evaluation."""
    generator = rng if rng is not None else np.random.default_rng()
    registry: Dict[str, Any] = {}
    registry.update(MATH_CONSTANTS)
    registry.update(EXTRA_CONSTANTS)
    for name, fn in {**MATH_FUNCTIONS, **EXTRA_FUNCTIONS}.items():
        registry[name] = Builtin(name, _numeric_result(fn), arity=_arity(fn), vectorized=True)
    registry["random"] = Builtin("random", _make_random(generator))
    for name, fn in VECTOR_ROUTINES.items():
        registry[name] = Builtin(name, fn)
    for name, fn in LIKE_ROUTINES.items():
        registry[name] = Builtin(name, fn, vectorized=True)
    return registry


def _numeric_result(fn: Callable[..., Any]) -> Callable[..., Numeric]:
    def call(*args):
        return to_result(fn(*(as_numeric(arg) for arg in args)))

    call.__name__ = getattr(fn, "__name__", "builtin")
    return call
