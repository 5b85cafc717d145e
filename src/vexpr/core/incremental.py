"""Per-index ("sample-wise") evaluation into a caller-owned output buffer."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, MutableSequence, Optional

import numpy as np

from .ast import Program
from .builtins import build_globals
from .evaluator import EvaluationConfig, Evaluator
from .exceptions import EvaluationError, InvalidAssignmentTarget, LengthMismatch
from .scope import Scope, is_function
from .values import as_numeric, is_vector

logger = logging.getLogger(__name__)


def _vector_bindings(bindings: Mapping[str, Any], size: int) -> Dict[str, Any]:
    prepared: Dict[str, Any] = {}
    for name, value in bindings.items():
        if not is_function(value):
            value = as_numeric(value)
            if is_vector(value) and value.shape[0] != size:
                raise LengthMismatch(size, value.shape[0], f"output buffer and binding '{name}'")
        prepared[name] = value
    return prepared


def run_incremental(
    program: Program,
    output: MutableSequence[float],
    bindings: Optional[Mapping[str, Any]] = None,
    *,
    config: Optional[EvaluationConfig] = None,
) -> None:
    """Evaluate ``program`` once per index of ``output``, writing each result in place.

    Vector bindings must match ``len(output)`` and are projected to their
    ``i``-th element; scalars and functions pass through. Each index runs
    against fresh globals, so implicit globals never carry over between
    samples, while a host function may read ``output[j]``: entries before ``i``
    hold fresh results, the rest still hold what the caller left there.
    On the first failing index the sweep stops and the error propagates;
    that entry and every later one keep their previous contents.
    """
    cfg = (config or EvaluationConfig()).normalized()
    size = len(output)
    prepared = _vector_bindings(bindings or {}, size)
    evaluator = Evaluator(cfg)
    rng = cfg.make_rng()
    logger.debug("incremental evaluation over %d indices", size)
    with np.errstate(all="ignore"):
        for index in range(size):
            projection = {
                name: float(value[index]) if is_vector(value) else value
                for name, value in prepared.items()
            }
            scope = Scope(projection, build_globals(rng))
            try:
                result = evaluator.run(program, scope)
                if is_vector(result):
                    raise InvalidAssignmentTarget(
                        f"Incremental evaluation must produce a scalar per index, got a vector at index {index}"
                    )
            except EvaluationError:
                logger.debug("incremental evaluation aborted at index %d", index)
                raise
            output[index] = result
