from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from .core.evaluator import EvaluationConfig
from .core.exceptions import VexprError
from .core.program import Program


def _parse_binding(text: str) -> tuple[str, Any]:
    name, sep, raw = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Bindings must look like name=value[,value...]; got {text!r}")
    try:
        values = [float(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Non-numeric value in binding {text!r}") from exc
    if "," in raw:
        return name.strip(), np.asarray(values, dtype=np.float64)
    if len(values) != 1:
        raise argparse.ArgumentTypeError(f"Binding {text!r} has no value")
    return name.strip(), values[0]


def _load_program(path: Path) -> Program:
    try:
        source = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise SystemExit(f"Program file not found: {path}") from exc
    return Program(source)


def _write_output(path: Path, result: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if str(path).lower().endswith(".json"):
        path.write_text(json.dumps(np.asarray(result).tolist(), indent=2), encoding="utf-8")
    else:
        np.save(path, np.asarray(result))


def _emit(result: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(np.asarray(result).tolist()))
        return
    np.set_printoptions(suppress=True)
    print(np.asarray(result) if isinstance(result, np.ndarray) else result)


def _evaluate(program: Program, args: argparse.Namespace) -> Any:
    bindings: Dict[str, Any] = dict(args.bind)
    config = EvaluationConfig(seed=args.seed, max_loop_iterations=args.max_loop_iterations)
    try:
        return program.evaluate(bindings, config=config)
    except VexprError as exc:
        raise SystemExit(f"error: {exc}") from exc


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--bind",
        action="append",
        type=_parse_binding,
        default=[],
        metavar="NAME=V[,V...]",
        help="Bind a scalar, or a vector when values are comma separated (repeatable)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for random()")
    parser.add_argument(
        "--max-loop-iterations",
        type=int,
        default=None,
        help="Abort any loop that runs more than this many iterations",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="vexpr command line utilities")
    subparsers = parser.add_subparsers(dest="cmd")

    eval_parser = subparsers.add_parser("eval", help="Evaluate an expression given on the command line")
    eval_parser.add_argument("source", help="Program text to evaluate")
    _add_common(eval_parser)

    run_parser = subparsers.add_parser("run", help="Evaluate a program file")
    run_parser.add_argument("program", type=Path, help="Path to the program file")
    _add_common(run_parser)
    run_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Optional output path (.npy/.json). If omitted, prints the result",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.cmd in {"eval", "run"}:
        try:
            program = Program(args.source) if args.cmd == "eval" else _load_program(args.program)
        except VexprError as exc:
            raise SystemExit(f"error: {exc}") from exc
        result = _evaluate(program, args)
        out = getattr(args, "out", None)
        if out is not None:
            _write_output(out, result)
        else:
            _emit(result, args.json)
        return

    parser.print_help()


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
