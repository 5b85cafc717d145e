from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Sequence

from .evaluator import EvaluationConfig
from .program import evaluate
from .values import Numeric

logger = logging.getLogger(__name__)


def compose_template(segments: Sequence[str], args: Sequence[Any]) -> tuple[str, Dict[str, Any]]:
    """Splice generated identifiers between ``segments`` and bind ``args`` to them.

    ``segments`` must hold exactly one more entry than ``args``, the way a
    tagged template splits its literal text around interpolations.
    """
    if len(segments) != len(args) + 1:
        raise ValueError(
            f"Template needs len(segments) == len(args) + 1; got {len(segments)} segments "
            f"for {len(args)} arguments"
        )
    prefix = f"__tmpl{uuid.uuid4().hex[:12]}"
    bindings: Dict[str, Any] = {}
    parts = [segments[0]]
    for position, (arg, segment) in enumerate(zip(args, segments[1:])):
        name = f"{prefix}_{position}"
        bindings[name] = arg
        parts.extend((" ", name, " ", segment))
    return "".join(parts), bindings


def evaluate_template(
    segments: Sequence[str],
    args: Sequence[Any],
    *,
    config: Optional[EvaluationConfig] = None,
) -> Numeric:
    source, bindings = compose_template(segments, args)
    logger.debug("evaluating template with %d spliced arguments", len(bindings))
    return evaluate(source, bindings, config=config)
