from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path

import numpy as np
import pytest

from vexpr.__main__ import main

SRC = Path(__file__).resolve().parent.parent / "src"


def test_cli_eval_in_process(capsys):
    main(["eval", "x * 2 + 1", "--bind", "x=1,2,3", "--json"])
    assert json.loads(capsys.readouterr().out) == [3.0, 5.0, 7.0]


def test_cli_eval_scalar_binding(capsys):
    main(["eval", "x + 1", "--bind", "x=4"])
    assert capsys.readouterr().out.strip() == "5.0"


def test_cli_reports_errors():
    with pytest.raises(SystemExit, match="UndefinedReference|not defined"):
        main(["eval", "missing + 1"])
    with pytest.raises(SystemExit, match="Syntax error"):
        main(["eval", "1 +"])


def test_cli_run_writes_output(tmp_path: Path):
    program = tmp_path / "wave.vx"
    program.write_text("t = linspace(0, 1, 4);\nt * scale\n", encoding="utf-8")
    main(["run", str(program), "--bind", "scale=2", "--out", str(tmp_path / "out.npy")])
    np.testing.assert_allclose(np.load(tmp_path / "out.npy"), [0.0, 2 / 3, 4 / 3, 2.0])


def test_cli_run_smoke(tmp_path: Path):
    program = tmp_path / "sum.vx"
    program.write_text("s = 0; for (var v of arange(4)) s += v; s", encoding="utf-8")
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC), env.get("PYTHONPATH")]))
    proc = subprocess.run(
        ["python", "-m", "vexpr", "run", str(program), "--out", str(tmp_path / "out.json")],
        cwd=str(tmp_path),
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        pytest.fail(f"CLI failed: {proc.returncode}\n{proc.stdout}\n{proc.stderr}")
    assert json.loads((tmp_path / "out.json").read_text(encoding="utf-8")) == 6.0
