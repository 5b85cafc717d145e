"""Scalar/vector value model and elementwise broadcasting.

A ``Numeric`` is either a Python ``float`` (scalar) or a one-dimensional
``float64`` ndarray (vector). Operators follow IEEE-754 double semantics
as a JavaScript engine would apply them: division by zero never raises,
``%`` is the truncated remainder, and bitwise operators work on 32-bit
integers. Combining two vectors requires equal lengths.

Buffer discipline: every operation here returns a freshly allocated vector;
nothing in this module mutates its inputs.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Sequence, Union

import numpy as np

from .exceptions import LengthMismatch, NotANumber, UnimplementedOperator

Numeric = Union[float, np.ndarray]

_TWO_32 = 2.0**32


def is_vector(value: Any) -> bool:
    return isinstance(value, np.ndarray)


def as_numeric(value: Any) -> Numeric:
    """Coerce a host or internal value to ``Numeric``.

    A one-dimensional ``float64`` ndarray is returned unchanged so that
    indexed writes reach the caller's buffer; any other array-like is copied
    into a fresh ``float64`` vector.
    """
    if isinstance(value, float):
        return value
    if isinstance(value, np.ndarray):
        if value.ndim == 0:
            return float(value)
        if value.ndim == 1 and value.dtype == np.float64:
            return value
        if value.ndim != 1:
            raise NotANumber(f"Only one-dimensional vectors are supported, got shape {value.shape}")
        return value.astype(np.float64)
    if isinstance(value, (int, np.integer, np.floating, np.bool_)):
        return float(value)
    if isinstance(value, (list, tuple)):
        return as_numeric(np.asarray(value, dtype=np.float64))
    raise NotANumber(f"Expected a number or vector, got {type(value).__name__}")


def to_result(value: Any) -> Numeric:
    """Normalize the output of a numpy operation (0-d arrays become floats)."""
    if isinstance(value, np.ndarray):
        if value.ndim == 0:
            return float(value)
        if value.dtype != np.float64:
            return value.astype(np.float64)
        return value
    return float(value)


def check_lengths(*values: Numeric, context: str = "operands") -> int:
    """Return the shared vector length of ``values`` (``-1`` when all scalar)."""
    length = -1
    for value in values:
        if isinstance(value, np.ndarray):
            if length < 0:
                length = value.shape[0]
            elif value.shape[0] != length:
                raise LengthMismatch(length, value.shape[0], context)
    return length


def is_truthy(value: Numeric) -> bool:
    """Control-flow truthiness: scalar ``0`` and ``NaN`` are falsy, vectors never are."""
    if isinstance(value, np.ndarray):
        return True
    return not (value == 0.0 or value != value)


def truth_mask(value: Numeric) -> Union[bool, np.ndarray]:
    """Elementwise truthiness used by ``!``, ``?:`` and mask indexing."""
    if isinstance(value, np.ndarray):
        return ~((value == 0.0) | np.isnan(value))
    return is_truthy(value)


# 32-bit integer conversions ---------------------------------------------------


def to_uint32(value: Numeric) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    finite = np.where(np.isfinite(arr), np.trunc(arr), 0.0)
    return np.mod(finite, _TWO_32).astype(np.int64)


def to_int32(value: Numeric) -> np.ndarray:
    unsigned = to_uint32(value)
    return np.where(unsigned >= 2**31, unsigned - 2**32, unsigned)


def from_int32(value: np.ndarray) -> np.ndarray:
    wrapped = np.mod(value, 2**32)
    return np.where(wrapped >= 2**31, wrapped - 2**32, wrapped).astype(np.float64)


def _shift_count(value: Numeric) -> np.ndarray:
    return to_uint32(value) & 31


def _bit_and(a, b):
    return (to_int32(a) & to_int32(b)).astype(np.float64)


def _bit_or(a, b):
    return (to_int32(a) | to_int32(b)).astype(np.float64)


def _bit_xor(a, b):
    return (to_int32(a) ^ to_int32(b)).astype(np.float64)


def _shift_left(a, b):
    return from_int32(np.left_shift(to_int32(a), _shift_count(b)))


def _shift_right(a, b):
    return np.right_shift(to_int32(a), _shift_count(b)).astype(np.float64)


def _shift_right_unsigned(a, b):
    return np.right_shift(to_uint32(a), _shift_count(b)).astype(np.float64)


def _compare(fn: Callable[[Any, Any], Any]) -> Callable[[Any, Any], Any]:
    def op(a, b):
        return fn(a, b).astype(np.float64)

    return op


def _remainder(a, b):
    return np.fmod(a, b)


def power(a, b):
    """``**`` as ECMAScript defines it: a base of magnitude 1 raised to a non-finite power is NaN."""
    result = np.power(a, b)
    return np.where((np.abs(a) == 1) & ~np.isfinite(b), np.nan, result)


BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.true_divide,
    "%": _remainder,
    "**": power,
    "<": _compare(np.less),
    "<=": _compare(np.less_equal),
    ">": _compare(np.greater),
    ">=": _compare(np.greater_equal),
    "==": _compare(np.equal),
    "===": _compare(np.equal),
    "!=": _compare(np.not_equal),
    "!==": _compare(np.not_equal),
    "&": _bit_and,
    "|": _bit_or,
    "^": _bit_xor,
    "<<": _shift_left,
    ">>": _shift_right,
    ">>>": _shift_right_unsigned,
}


def apply_binary(op: str, left: Numeric, right: Numeric) -> Numeric:
    fn = BINARY_OPERATORS.get(op)
    if fn is None:
        raise UnimplementedOperator(op, "binary operator")
    check_lengths(left, right)
    with np.errstate(all="ignore"):
        return to_result(fn(np.float64(left) if not is_vector(left) else left, right))


def _negate(value):
    return np.negative(value)


def _plus(value):
    return np.asarray(value, dtype=np.float64).copy()


def _logical_not(value):
    return np.logical_not(truth_mask(value)).astype(np.float64)


def _bit_not(value):
    return (~to_int32(value)).astype(np.float64)


UNARY_OPERATORS: Dict[str, Callable[[Any], Any]] = {
    "-": _negate,
    "+": _plus,
    "!": _logical_not,
    "~": _bit_not,
}


def apply_unary(op: str, value: Numeric) -> Numeric:
    fn = UNARY_OPERATORS.get(op)
    if fn is None:
        raise UnimplementedOperator(op, "unary operator")
    with np.errstate(all="ignore"):
        return to_result(fn(value))


def select(test: Numeric, consequent: Numeric, alternate: Numeric) -> Numeric:
    """Broadcasting ternary: each operand may independently be scalar or vector."""
    check_lengths(test, consequent, alternate)
    if not any(is_vector(v) for v in (test, consequent, alternate)):
        return consequent if is_truthy(test) else alternate
    return to_result(np.where(truth_mask(test), consequent, alternate))


def _element_result(value: Any) -> float:
    # a vector stored into one element reads the way ToNumber reads an array
    if isinstance(value, np.ndarray) and value.ndim != 0:
        if value.size == 0:
            return 0.0
        return float(value.ravel()[0]) if value.size == 1 else float("nan")
    return float(as_numeric(value))


def broadcast_call(call: Callable[..., Any], args: Sequence[Any]) -> Numeric:
    """Map a scalar routine over its vector arguments.

    Scalar (and non-numeric) arguments are passed unchanged to every call;
    each vector argument contributes its i-th element. The output length is
    the shared length of the vector arguments.
    """
    if len(args) == 1:
        (vec,) = args
        return np.fromiter((_element_result(call(float(x))) for x in vec), np.float64, vec.shape[0])
    if len(args) == 2:
        left, right = args
        if is_vector(left) and is_vector(right):
            check_lengths(left, right, context="call arguments")
            pairs = ((float(a), float(b)) for a, b in zip(left, right))
        elif is_vector(left):
            pairs = ((float(a), right) for a in left)
        else:
            pairs = ((left, float(b)) for b in right)
        count = left.shape[0] if is_vector(left) else right.shape[0]
        return np.fromiter((_element_result(call(a, b)) for a, b in pairs), np.float64, count)
    count = check_lengths(*args, context="call arguments")
    out = np.empty(count)
    for i in range(count):
        out[i] = _element_result(call(*(float(a[i]) if is_vector(a) else a for a in args)))
    return out
