try:
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _load_version
except ImportError:  # pragma: no cover
    from importlib_metadata import (  # type: ignore
        PackageNotFoundError,
    )
    from importlib_metadata import (
        version as _load_version,
    )

from .core.builtins import build_globals
from .core.evaluator import EvaluationConfig
from .core.exceptions import (
    EvaluationError,
    IncompleteProgram,
    IndexOutOfRange,
    InvalidArrayElement,
    InvalidAssignmentTarget,
    IterationLimitExceeded,
    LengthMismatch,
    NotANumber,
    NotAVector,
    NotCallable,
    NotIterable,
    ParseError,
    UndefinedReference,
    UnimplementedOperator,
    UserThrow,
    VexprError,
)
from .core.program import Program, evaluate, evaluate_incremental
from .core.template import evaluate_template

try:
    __version__ = _load_version("vexpr")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Program",
    "EvaluationConfig",
    "evaluate",
    "evaluate_incremental",
    "evaluate_template",
    "build_globals",
    "VexprError",
    "ParseError",
    "EvaluationError",
    "UndefinedReference",
    "NotCallable",
    "NotANumber",
    "NotAVector",
    "InvalidAssignmentTarget",
    "InvalidArrayElement",
    "LengthMismatch",
    "IndexOutOfRange",
    "NotIterable",
    "UnimplementedOperator",
    "UserThrow",
    "IncompleteProgram",
    "IterationLimitExceeded",
    "__version__",
]
