import pytest

from vexpr import EvaluationConfig, Program


def test_normalized_coerces_values():
    cfg = EvaluationConfig(seed="7", max_loop_iterations=10.0, isolate_bindings=1).normalized()
    assert cfg.seed == 7
    assert cfg.max_loop_iterations == 10
    assert cfg.isolate_bindings is True


def test_defaults_are_unbounded_and_aliasing():
    cfg = EvaluationConfig().normalized()
    assert cfg.seed is None
    assert cfg.max_loop_iterations is None
    assert cfg.isolate_bindings is False


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"seed": -1}, "seed must be non-negative"),
        ({"max_loop_iterations": 0}, "max_loop_iterations must be positive"),
    ],
)
def test_invalid_values_are_rejected(kwargs, message):
    with pytest.raises(ValueError, match=message):
        EvaluationConfig(**kwargs).normalized()


def test_program_validates_config_before_running():
    with pytest.raises(ValueError):
        Program("1").evaluate(config=EvaluationConfig(max_loop_iterations=-5))
