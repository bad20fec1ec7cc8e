# test_tableau.py

from dataclasses import replace
from fractions import Fraction

import numpy as np
import pytest

from tableau import (
    Constraint,
    DegeneratePivotError,
    NotCanonicalError,
    Row,
    ShapeMismatchError,
    SimplexError,
    Status,
    Tableau,
    TableauCorruptionError,
    basic_idxs,
    check_integrity,
    constraint_map,
    convert_number,
    divide_row,
    eliminate_basic_var,
    multiply_row,
    non_basic_idxs,
    set_basic_var,
    subtract_row,
)
from utils import convert_to_fraction, format_tableau, idx_max, idx_min


@pytest.fixture
def row1():
    return Constraint(val=24, basic_idx=3, coeffs=[0.5, 2, 1, 1, 0])


@pytest.fixture
def row2():
    return Constraint(val=60, basic_idx=4, coeffs=[1, 2, 4, 0, 1])


@pytest.fixture
def problem(row1, row2):
    return Tableau(objective=Row(coeffs=[6, 14, 13, 0, 0]), constraints=[row1, row2])


# --- Row algebra ---

def test_divide_row(row1):
    result = divide_row(row1, 2)
    assert result.val == 12
    assert np.allclose(result.coeffs, [0.25, 1, 0.5, 0.5, 0])
    assert result.basic_idx == 3
    # The original row is untouched
    assert row1.val == 24
    assert np.allclose(row1.coeffs, [0.5, 2, 1, 1, 0])


def test_divide_row_by_zero(row1):
    with pytest.raises(DegeneratePivotError):
        divide_row(row1, 0)


def test_multiply_row(row2):
    result = multiply_row(row2, -0.5)
    assert result.val == -30
    assert np.allclose(result.coeffs, [-0.5, -1, -2, 0, -0.5])


def test_subtract_row_keeps_left_row_identity(row1, row2):
    result = subtract_row(row2, row1)
    assert isinstance(result, Constraint)
    assert result.basic_idx == 4
    assert result.val == 36
    assert np.allclose(result.coeffs, [0.5, 0, 3, -1, 1])


def test_subtract_row_shape_mismatch(row1):
    short = Row(coeffs=[1, 2, 3], val=1)
    with pytest.raises(ShapeMismatchError):
        subtract_row(row1, short)
    # Shape errors are also plain value errors
    assert issubclass(ShapeMismatchError, ValueError)


def test_set_basic_var(row1):
    result = set_basic_var(row1, 1)
    assert result.basic_idx == 1
    assert result.coeffs[1] == 1
    assert result.val == 12


def test_set_basic_var_zero_coefficient(row1):
    with pytest.raises(DegeneratePivotError):
        set_basic_var(row1, 4)


def test_eliminate_basic_var(row1, row2):
    basis = set_basic_var(row1, 1)
    result = eliminate_basic_var(row2, basis)
    assert result.coeffs[1] == 0
    assert result.val == 36
    assert np.allclose(result.coeffs, [0.5, 0, 3, -1, 1])

    objective = eliminate_basic_var(Row(coeffs=[6, 14, 13, 0, 0]), basis)
    assert isinstance(objective, Row) and not isinstance(objective, Constraint)
    assert objective.val == -168
    assert np.allclose(objective.coeffs, [2.5, 0, 6, -7, 0])


def test_eliminate_absent_variable_returns_row(row1, row2):
    basis = set_basic_var(row1, 3)
    assert eliminate_basic_var(row2, basis) is row2


def test_rows_are_read_only(row1):
    with pytest.raises(ValueError):
        row1.coeffs[0] = 5.0


# --- Index bookkeeping ---

def test_basic_and_non_basic_idxs(row1, row2):
    assert basic_idxs([row1, row2]) == [3, 4]
    assert non_basic_idxs([row1, row2]) == [0, 1, 2]
    assert non_basic_idxs([]) == []


def test_constraint_map_is_cached_per_tableau(problem, row1):
    mapping = constraint_map(problem)
    assert mapping is problem.constraint_map
    assert mapping[3] is problem.constraints[0]

    # Replacing the constraints gives a new tableau with its own mapping
    swapped = replace(problem, constraints=[set_basic_var(row1, 1), problem.constraints[1]])
    assert set(swapped.constraint_map) == {1, 4}
    assert set(problem.constraint_map) == {3, 4}


def test_tableau_shape_mismatch(row1):
    with pytest.raises(ShapeMismatchError):
        Tableau(objective=Row(coeffs=[1, 2, 3]), constraints=[row1])


def test_new_tableau_is_in_progress(problem):
    assert problem.status is Status.IN_PROGRESS
    assert not problem.status.is_terminal
    assert Status.OPTIMAL.is_terminal and Status.UNBOUNDED.is_terminal
    assert problem.num_vars == 5
    assert problem.num_constraints == 2
    assert problem.coefficient_matrix.shape == (2, 5)


# --- Builders ---

def test_build_with_fractions():
    tableau = Tableau.build(
        [6, 14, 13, 0, 0],
        [{"val": 24, "basic_idx": 3, "coeffs": [0.5, 2, 1, 1, 0]},
         {"val": 60, "basic_idx": 4, "coeffs": [1, 2, 4, 0, 1]}],
        number_type=Fraction,
    )
    assert tableau.objective.coeffs.dtype == object
    assert tableau.constraints[0].coeffs[0] == Fraction(1, 2)
    assert isinstance(tableau.constraints[1].val, Fraction)
    assert isinstance(tableau.objective.val, Fraction)


def test_build_with_fractions_reads_floats_as_decimals():
    tableau = Tableau.build(
        [0.1, 1 / 3],
        [{"val": 0.3, "basic_idx": 1, "coeffs": [0.2, 1]}],
        number_type=Fraction,
    )
    assert list(tableau.objective.coeffs) == [Fraction(1, 10), Fraction(1, 3)]
    assert tableau.constraints[0].val == Fraction(3, 10)
    assert tableau.constraints[0].coeffs[0] == Fraction(1, 5)
    # Exact inputs are kept as they are
    assert convert_number(Fraction(3602879701896397, 36028797018963968), Fraction) != Fraction(1, 10)
    assert convert_number(np.float64(0.1), Fraction) == Fraction(1, 10)
    assert convert_number(7, Fraction) == 7


def test_build_from_rows_converts_to_float(problem):
    tableau = Tableau.build(problem.objective, problem.constraints, number_type=float)
    assert tableau.objective.coeffs.dtype == float
    assert basic_idxs(tableau.constraints) == [3, 4]


def test_from_standard_form():
    tableau = Tableau.from_standard_form([3, 5], [[1, 0], [0, 2], [3, 2]], [4, 12, 18])
    assert tableau.num_vars == 5
    assert basic_idxs(tableau.constraints) == [2, 3, 4]
    assert np.allclose(tableau.constraints[2].coeffs, [3, 2, 0, 0, 1])
    assert np.allclose(tableau.objective.coeffs, [3, 5, 0, 0, 0])
    assert tableau.objective.val == 0


def test_from_standard_form_validation():
    with pytest.raises(ShapeMismatchError, match="does not match"):
        Tableau.from_standard_form([1, 2], [[1, 2, 3]], [1])
    with pytest.raises(NotCanonicalError):
        Tableau.from_standard_form([1, 1], [[1, 1]], [-2])


def test_check_integrity():
    tableau = Tableau(
        objective=Row(coeffs=[1.0, np.nan, 0.0]),
        constraints=[Constraint(val=1.0, basic_idx=2, coeffs=[1.0, 1.0, 1.0])],
    )
    with pytest.raises(TableauCorruptionError, match="objective"):
        check_integrity(tableau)


def test_exception_inheritance():
    """Test that custom exceptions inherit properly."""
    for error in (ShapeMismatchError, DegeneratePivotError, NotCanonicalError, TableauCorruptionError):
        assert issubclass(error, SimplexError)
    assert issubclass(SimplexError, Exception)


# --- Helpers ---

def test_idx_helpers_prefer_first_occurrence():
    assert idx_max([1, 5, 5, 2]) == 1
    assert idx_min([3, 1, 1]) == 1
    assert idx_min([3, -1, 2], key=abs) == 1


def test_convert_to_fraction():
    assert convert_to_fraction(0.5) == "1/2"
    assert convert_to_fraction(Fraction(11, 14)) == "11/14"
    assert convert_to_fraction(2.0) == "2"
    assert convert_to_fraction(1 / 3, force_float=True) == "0.333"


def test_format_tableau(problem):
    text = format_tableau(problem)
    assert "x1" in text and "RHS" in text and "Basis" in text
    assert "R2" in text and "x5" in text

    exact = format_tableau(Tableau.build(problem.objective, problem.constraints, number_type=Fraction),
                           fraction_digits=3)
    assert "1/2" in exact
