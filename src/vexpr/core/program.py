from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, MutableMapping, MutableSequence, Optional

import numpy as np

from .ast import Program as ProgramNode
from .builtins import build_globals
from .evaluator import EvaluationConfig, Evaluator
from .incremental import run_incremental
from .parser import parse_program
from .scope import Scope
from .values import Numeric

logger = logging.getLogger(__name__)


def _prepare_bindings(
    bindings: Optional[MutableMapping[str, Any]],
    config: EvaluationConfig,
) -> MutableMapping[str, Any]:
    if bindings is None:
        return {}
    if not config.isolate_bindings:
        return bindings
    isolated: Dict[str, Any] = {}
    for name, value in bindings.items():
        isolated[name] = value.copy() if isinstance(value, np.ndarray) else value
    return isolated


class Program:
    """A parsed program that can be evaluated any number of times.

    Every evaluation builds its own builtin registry, so nothing an
    evaluation assigns to an implicit global is visible to the next one.
    Caller bindings are used by reference unless
    ``EvaluationConfig.isolate_bindings`` is set: assignments to names
    present in ``bindings`` update that mapping, and indexed writes into a
    bound ``float64`` vector update the caller's array.
    """

    def __init__(self, source: str):
        self.src = source
        self.ast: ProgramNode = parse_program(source)

    def evaluate(
        self,
        bindings: Optional[MutableMapping[str, Any]] = None,
        config: Optional[EvaluationConfig] = None,
    ) -> Numeric:
        cfg = (config or EvaluationConfig()).normalized()
        scope = Scope(_prepare_bindings(bindings, cfg), build_globals(cfg.make_rng()))
        logger.debug("evaluating program with %d bindings", len(scope.locals))
        with np.errstate(all="ignore"):
            return Evaluator(cfg).run(self.ast, scope)

    def evaluate_incremental(
        self,
        output: MutableSequence[float],
        bindings: Optional[Mapping[str, Any]] = None,
        config: Optional[EvaluationConfig] = None,
    ) -> None:
        run_incremental(self.ast, output, bindings, config=config)

    def __repr__(self) -> str:
        return f"Program({self.src!r})"


def evaluate(
    source: str,
    bindings: Optional[MutableMapping[str, Any]] = None,
    *,
    config: Optional[EvaluationConfig] = None,
) -> Numeric:
    """Parse and evaluate ``source`` once, returning its final value."""
    return Program(source).evaluate(bindings, config=config)


def evaluate_incremental(
    source: str,
    output: MutableSequence[float],
    bindings: Optional[Mapping[str, Any]] = None,
    *,
    config: Optional[EvaluationConfig] = None,
) -> None:
    Program(source).evaluate_incremental(output, bindings, config=config)
