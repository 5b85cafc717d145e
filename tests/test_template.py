import numpy as np
import pytest

from vexpr import evaluate_template
from vexpr.core.template import compose_template


def test_plain_text_matches_evaluate():
    assert evaluate_template(["-2 + 3"], []) == 1.0
    assert evaluate_template(["13121 * 30.5 + (4+ 4 - (3 - 3     )) / 5 * 10"], []) == pytest.approx(
        13121 * 30.5 + 16
    )


def test_templates_nest():
    inner = evaluate_template(["3"], [])
    assert evaluate_template(["2 + ", " * 5"], [inner]) == 17.0


def test_vector_arguments_broadcast():
    one_two_three = np.array([1.0, 2.0, 3.0])
    primes = np.array([2.0, 3.0, 5.0])
    total = evaluate_template(["", " + ", ""], [one_two_three, primes])
    np.testing.assert_array_equal(total, [3.0, 5.0, 8.0])


def test_function_arguments_can_be_called():
    assert evaluate_template(["", "(4)"], [lambda x: x + 1]) == 5.0


def test_generated_names_are_unique_per_call():
    first, first_bindings = compose_template(["", ""], [1.0])
    second, second_bindings = compose_template(["", ""], [1.0])
    assert first != second
    assert set(first_bindings).isdisjoint(second_bindings)
    assert first.strip() in first_bindings


def test_segment_count_must_match_arguments():
    with pytest.raises(ValueError):
        evaluate_template(["1", "2"], [])
