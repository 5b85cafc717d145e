from __future__ import annotations

from typing import Any, Optional


class VexprError(Exception):
    """Base class for vexpr-specific exceptions."""


class ParseError(VexprError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
        line_text: Optional[str] = None,
    ):
        detail = _format_location(line, column, line_text)
        super().__init__(f"{message}{detail}")
        self.line = line
        self.column = column
        self.line_text = line_text


class EvaluationError(VexprError, RuntimeError):
    """A runtime failure that aborts the whole evaluation call.

    ``kind`` names the failure category so hosts can branch on it without
    matching exception classes. ``line``/``column`` point at the innermost
    statement or expression that was executing when the error surfaced.
    """

    kind = "EvaluationError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.line: Optional[int] = None
        self.column: Optional[int] = None

    def attach_location(self, line: Optional[int], column: Optional[int]) -> None:
        if self.line is not None or line is None:
            return
        self.line = line
        self.column = column
        self.args = (f"{self.message}{_format_location(line, column, None)}",)


class UndefinedReference(EvaluationError, NameError):
    kind = "UndefinedReference"

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"{name} is not defined")
        self.name = name


class NotCallable(EvaluationError, TypeError):
    kind = "NotCallable"


class NotANumber(EvaluationError, TypeError):
    kind = "NotANumber"


class InvalidAssignmentTarget(EvaluationError, TypeError):
    kind = "InvalidAssignmentTarget"


class InvalidArrayElement(EvaluationError, TypeError):
    kind = "InvalidArrayElement"


class LengthMismatch(EvaluationError, ValueError):
    kind = "LengthMismatch"

    def __init__(self, left: int, right: int, context: str = "operands"):
        super().__init__(f"Vector {context} differ in length: {left} != {right}")
        self.left = left
        self.right = right


class NotAVector(EvaluationError, TypeError):
    kind = "NotAVector"


class IndexOutOfRange(EvaluationError, IndexError):
    kind = "IndexOutOfRange"


class NotIterable(EvaluationError, TypeError):
    kind = "NotIterable"


class UnimplementedOperator(EvaluationError, NotImplementedError):
    kind = "UnimplementedOperator"

    def __init__(self, operator: str, family: str = "operator"):
        super().__init__(f"Unsupported {family} '{operator}'")
        self.operator = operator


class UserThrow(EvaluationError):
    """Raised by ``throw``; ``payload`` is the thrown Numeric, unchanged."""

    kind = "UserThrow"

    def __init__(self, payload: Any):
        super().__init__(f"Uncaught {_describe_payload(payload)}")
        self.payload = payload


class IncompleteProgram(EvaluationError):
    kind = "IncompleteProgram"


class IterationLimitExceeded(EvaluationError):
    kind = "IterationLimitExceeded"

    def __init__(self, limit: int):
        super().__init__(f"Loop exceeded the configured limit of {limit} iterations")
        self.limit = limit


def _describe_payload(payload: Any) -> str:
    shape = getattr(payload, "shape", None)
    if shape is not None:
        return f"vector of length {shape[0]}"
    return repr(payload)


def _format_location(
    line: Optional[int],
    column: Optional[int],
    line_text: Optional[str],
) -> str:
    if line is None and column is None:
        return ""
    location = []
    if line is not None:
        location.append(f"line {line}")
    if column is not None:
        location.append(f"col {column}")
    location_str = f" ({', '.join(location)})"
    if line_text is None or column is None or column < 1:
        return location_str
    caret = " " * (column - 1) + "^"
    return f"{location_str}\n  {line_text}\n  {caret}"
