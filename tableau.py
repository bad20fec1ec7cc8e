import numbers
from dataclasses import dataclass, field, replace
from enum import Enum
from fractions import Fraction
from functools import cached_property

import numpy as np

EPS = 1e-10


# Custom Exception Classes for better error handling
class SimplexError(Exception):
    """Base class for simplex-related errors."""
    pass

class ShapeMismatchError(SimplexError, ValueError):
    """Raised when two rows have coefficient vectors of different lengths."""
    pass

class DegeneratePivotError(SimplexError):
    """Raised when a row would be normalized by a zero coefficient."""
    pass

class PrimalInfeasibleError(SimplexError):
    """Raised when the dual simplex finds a row that no variable can repair."""
    pass

class NotCanonicalError(SimplexError):
    """Raised when a tableau is not in the canonical form an engine requires."""
    pass

class IterationLimitError(SimplexError):
    """Raised when the pivot loop exceeds its iteration bound."""
    pass

class TableauCorruptionError(SimplexError):
    """Raised when the tableau appears to be in an invalid state."""
    pass


class Status(Enum):
    IN_PROGRESS = "in_progress"
    OPTIMAL = "optimal"
    UNBOUNDED = "unbounded"

    @property
    def is_terminal(self):
        return self is not Status.IN_PROGRESS


def as_vector(values, number_type=None):
    """
    Return a read-only coefficient vector.

    :param values: sequence of numbers
    :param number_type: float, Fraction or None to keep the inferred dtype
    """
    if number_type is float:
        vector = np.array(values, dtype=float)
    elif number_type is not None:
        vector = np.array([convert_number(v, number_type) for v in values], dtype=object)
    else:
        vector = np.array(values)
        if vector.dtype.kind in "iub":
            vector = vector.astype(float)
    if vector.ndim != 1:
        raise ShapeMismatchError(f"Coefficients must be one-dimensional, got shape {vector.shape}")
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True, eq=False)
class Row:
    """A coefficient vector (index = variable id) and its right-hand side `val`."""
    coeffs: np.ndarray
    val: numbers.Number = 0

    def __post_init__(self):
        object.__setattr__(self, "coeffs", as_vector(self.coeffs))


@dataclass(frozen=True, eq=False)
class Constraint(Row):
    """A row plus the index of the variable currently basic in it."""
    basic_idx: int = None


def tolerance(row):
    """Comparison slack for the row's number type; exact tableaus get none."""
    return 0 if row.coeffs.dtype == object else EPS


# --- Row algebra ---

def divide_row(row, divisor):
    """Divides a row by a number `divisor`."""
    if divisor == 0:
        raise DegeneratePivotError("Cannot divide a row by zero.")
    return replace(row, val=row.val / divisor, coeffs=row.coeffs / divisor)


def multiply_row(row, factor):
    """Multiplies a row by a number `factor`."""
    return replace(row, val=row.val * factor, coeffs=row.coeffs * factor)


def subtract_row(a, b):
    """Subtracts row `b` from row `a`; the result keeps `a`'s type and basic index."""
    if len(a.coeffs) != len(b.coeffs):
        raise ShapeMismatchError(
            f"Cannot subtract a row of length {len(b.coeffs)} from a row of length {len(a.coeffs)}"
        )
    return replace(a, val=a.val - b.val, coeffs=a.coeffs - b.coeffs)


def set_basic_var(constraint, var_idx):
    """Makes `var_idx` basic in `constraint` by scaling its coefficient to 1."""
    coeff = constraint.coeffs[var_idx]
    if abs(coeff) <= tolerance(constraint):
        raise DegeneratePivotError(
            f"Variable {var_idx} has a zero coefficient and cannot become basic in this row."
        )
    return replace(divide_row(constraint, coeff), basic_idx=var_idx)


def eliminate_basic_var(row, basis_constraint):
    """Removes the basic variable of `basis_constraint` from `row`."""
    factor = row.coeffs[basis_constraint.basic_idx]
    if factor == 0:
        return row
    return subtract_row(row, multiply_row(basis_constraint, factor))


# --- Index bookkeeping ---

def basic_idxs(constraints):
    """Returns the basic variable index of each constraint, in order."""
    return [c.basic_idx for c in constraints]


def non_basic_idxs(constraints):
    """Returns the ascending indices of variables that are not basic in any constraint."""
    if not constraints:
        return []
    basic = set(basic_idxs(constraints))
    return [i for i in range(len(constraints[0].coeffs)) if i not in basic]


def _as_row(data, cls, number_type):
    if isinstance(data, Row):
        kwargs = {"coeffs": as_vector(data.coeffs, number_type), "val": convert_number(data.val, number_type)}
        if cls is Constraint:
            kwargs["basic_idx"] = getattr(data, "basic_idx", None)
        return cls(**kwargs)
    if isinstance(data, dict):
        kwargs = dict(data)
        kwargs["coeffs"] = as_vector(kwargs["coeffs"], number_type)
        kwargs["val"] = convert_number(kwargs.get("val", 0), number_type)
        return cls(**kwargs)
    return cls(coeffs=as_vector(data, number_type), val=convert_number(0, number_type))


def convert_number(value, number_type):
    """
    Convert `value` to `number_type`. Floats become the nearest fraction with a
    denominator up to 10**6, so 0.1 is read as 1/10 and not its binary expansion.
    """
    if number_type is None:
        return value
    if isinstance(value, np.generic):
        value = value.item()
    if number_type is Fraction and isinstance(value, float):
        return Fraction(value).limit_denominator()
    return number_type(value)


@dataclass(frozen=True, eq=False)
class Tableau:
    """
    An objective row, the constraint rows and the solve status.

    The objective is maximized. `objective.val` holds the negated value of the
    objective at the current basic solution.
    """
    objective: Row
    constraints: tuple = field(default=())
    status: Status = Status.IN_PROGRESS

    def __post_init__(self):
        object.__setattr__(self, "constraints", tuple(self.constraints))
        n = len(self.objective.coeffs)
        lengths = [len(c.coeffs) for c in self.constraints]
        if any(length != n for length in lengths):
            raise ShapeMismatchError(
                f"Constraint lengths {lengths} do not match objective length ({n})"
            )

    @property
    def num_vars(self):
        return len(self.objective.coeffs)

    @property
    def num_constraints(self):
        return len(self.constraints)

    @property
    def coefficient_matrix(self):
        """Constraint coefficients stacked into an (m, n) array."""
        if not self.constraints:
            return np.empty((0, self.num_vars), dtype=self.objective.coeffs.dtype)
        return np.vstack([c.coeffs for c in self.constraints])

    @property
    def rhs(self):
        return [c.val for c in self.constraints]

    @cached_property
    def constraint_map(self):
        """Maps each basic variable index to the constraint it is basic in."""
        return {c.basic_idx: c for c in self.constraints}

    @classmethod
    def build(cls, objective, constraints, objective_val=0, number_type=float):
        """
        Build a tableau with every entry converted to a single number type.

        :param objective: Row or sequence of objective coefficients
        :param constraints: Constraints or mappings with val, basic_idx and coeffs
        :param objective_val: RHS of the objective row when `objective` is a sequence
        :param number_type: float or Fraction. With Fraction, float entries are read as
            the closest fraction with a denominator up to 10**6 (0.1 becomes 1/10).
        """
        if isinstance(objective, (Row, dict)):
            obj_row = _as_row(objective, Row, number_type)
        else:
            obj_row = Row(coeffs=as_vector(objective, number_type), val=convert_number(objective_val, number_type))
        rows = [_as_row(c, Constraint, number_type) for c in constraints]
        return cls(objective=obj_row, constraints=rows)

    @classmethod
    def from_standard_form(cls, c, A, b, number_type=float):
        """
        Initialize the tableau for the problem:
        Maximize c^T x
        Subject to Ax <= b, x >= 0

        One slack variable per constraint is appended and made basic.
        """
        A = np.asarray(A)
        b = np.asarray(b)
        c = np.asarray(c)
        if A.ndim != 2:
            raise ShapeMismatchError("Constraint matrix A must be two-dimensional.")
        m, n = A.shape

        dimension_errors = []
        if len(b) != m:
            dimension_errors.append(f"Constraint vector b length ({len(b)}) does not match number of constraints ({m})")
        if len(c) != n:
            dimension_errors.append(f"Objective vector c length ({len(c)}) does not match number of variables ({n})")
        if dimension_errors:
            raise ShapeMismatchError("; ".join(dimension_errors))
        if np.any(b < 0):
            raise NotCanonicalError("Negative right-hand sides need a phase-1 or dual simplex start.")

        slack_vars = np.eye(m)
        objective = list(c) + [0] * m
        constraints = [
            {"val": b[i], "basic_idx": n + i, "coeffs": list(A[i]) + list(slack_vars[i])}
            for i in range(m)
        ]
        return cls.build(objective, constraints, number_type=number_type)


def constraint_map(tableau):
    """Returns the basic index -> constraint lookup of `tableau`."""
    return tableau.constraint_map


def check_integrity(tableau):
    """Check tableau for corruption (NaN/Inf values)."""
    if tableau.objective.coeffs.dtype == object:
        return
    rows = [tableau.objective, *tableau.constraints]
    for r, row in enumerate(rows):
        values = np.append(row.coeffs, row.val)
        if not np.all(np.isfinite(values)):
            bad = np.where(~np.isfinite(values))[0]
            label = "objective" if r == 0 else f"constraint {r - 1}"
            raise TableauCorruptionError(
                f"Tableau corruption: non-finite value {values[bad[0]]} in {label}. "
                f"Total {len(bad)} corrupted entries in that row."
            )

