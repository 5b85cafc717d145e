import numpy as np
import pytest

from vexpr import (
    InvalidAssignmentTarget,
    LengthMismatch,
    Program,
    UndefinedReference,
    UserThrow,
    evaluate_incremental,
)


def test_infinite_impulse_response():
    output = np.zeros(5)
    n = np.arange(5.0)

    def weave(i):
        return output[int(i)] if i >= 0 else 0.0

    evaluate_incremental("(n == 0) + 0.5 * weave(n-1)", output, {"n": n, "weave": weave})
    np.testing.assert_array_equal(output, [1.0, 0.5, 0.25, 0.125, 0.0625])


def test_reads_ahead_of_the_current_index_see_previous_contents():
    output = np.array([10.0, 11.0, 12.0, 13.0, 14.0])

    def peek(j):
        return output[int(j)] if j < len(output) else 99.0

    evaluate_incremental("peek(n + 1)", output, {"n": np.arange(5.0), "peek": peek})
    np.testing.assert_array_equal(output, [11.0, 12.0, 13.0, 14.0, 99.0])


def test_non_uniform_for_loops():
    output = np.zeros(5)
    src = """
    res = 0;
    for (i = 0; i < n; ++i) {
      res += i;
    }
    res
    """
    evaluate_incremental(src, output, {"n": np.arange(5.0)})
    np.testing.assert_array_equal(output, [0.0, 0.0, 1.0, 3.0, 6.0])


def test_implicit_globals_do_not_carry_between_indices():
    output = np.full(3, -1.0)
    with pytest.raises(UndefinedReference):
        evaluate_incremental("if (n > 0) seen + 1; else { seen = 1; 0 }", output, {"n": np.arange(3.0)})
    np.testing.assert_array_equal(output, [0.0, -1.0, -1.0])


def test_scalar_and_function_bindings_pass_through():
    output = [0.0, 0.0, 0.0]
    evaluate_incremental("k * double(x)", output, {"k": 10, "x": np.array([1.0, 2.0, 3.0]), "double": lambda v: 2 * v})
    assert output == [20.0, 40.0, 60.0]


def test_abort_leaves_remaining_entries_untouched():
    output = np.full(5, -1.0)
    with pytest.raises(UserThrow) as info:
        evaluate_incremental("if (n == 2) throw n; n * 10", output, {"n": np.arange(5.0)})
    assert info.value.payload == 2.0
    np.testing.assert_array_equal(output, [0.0, 10.0, -1.0, -1.0, -1.0])


def test_binding_lengths_must_match_output():
    output = np.zeros(4)
    with pytest.raises(LengthMismatch):
        evaluate_incremental("n", output, {"n": np.arange(3.0)})
    np.testing.assert_array_equal(output, np.zeros(4))


def test_each_index_must_produce_a_scalar():
    output = np.zeros(2)
    with pytest.raises(InvalidAssignmentTarget):
        evaluate_incremental("zeros(3)", output)


def test_program_reuses_parse_across_sweeps():
    prog = Program("x * x")
    first = np.zeros(3)
    second = np.zeros(3)
    prog.evaluate_incremental(first, {"x": np.array([1.0, 2.0, 3.0])})
    prog.evaluate_incremental(second, {"x": np.array([4.0, 5.0, 6.0])})
    np.testing.assert_array_equal(first, [1.0, 4.0, 9.0])
    np.testing.assert_array_equal(second, [16.0, 25.0, 36.0])
