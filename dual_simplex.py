"""
Dual simplex method.

The dual simplex method solves a tableau in "dual canonical" form: the
optimality conditions hold (no objective coefficient is positive) but some
constraint right-hand sides may be negative. This is the tableau obtained by
taking an optimal tableau and changing the right-hand side of a constraint,
which is what `rhs_what_if` does.
"""
import logging
from dataclasses import replace
from fractions import Fraction

from simplex import default_max_iterations, pivot, tableau_status
from tableau import (
    IterationLimitError,
    NotCanonicalError,
    PrimalInfeasibleError,
    Status,
    Tableau,
    basic_idxs,
    check_integrity,
    convert_number,
    non_basic_idxs,
    tolerance,
)
from utils import idx_min

logger = logging.getLogger(__name__)


def is_dual_canonical(tableau):
    """True when every constraint has a distinct basic variable and no objective coefficient is positive."""
    idxs = basic_idxs(tableau.constraints)
    if any(i is None or not 0 <= i < tableau.num_vars for i in idxs):
        return False
    if len(set(idxs)) != len(idxs):
        return False
    tol = tolerance(tableau.objective)
    return all(coeff <= tol for coeff in tableau.objective.coeffs)


def dual_pivot_row_idx(tableau):
    """
    Returns the index of the constraint with the most negative RHS, which leaves
    the basis next. Returns None when no RHS is negative.
    """
    rhs = tableau.rhs
    if not rhs:
        return None
    row_idx = idx_min(rhs)
    if rhs[row_idx] < -tolerance(tableau.objective):
        return row_idx
    return None


def dual_next_basic_idx(tableau, row_idx):
    """
    Returns the non-basic variable that enters the basis for pivot row `row_idx`:
    among the negative coefficients of the row, the one whose objective coefficient
    reaches zero first.
    """
    row = tableau.constraints[row_idx]
    tol = tolerance(row)
    candidates = [i for i in non_basic_idxs(tableau.constraints) if row.coeffs[i] < -tol]
    if not candidates:
        raise PrimalInfeasibleError(
            f"Constraint {row_idx} has right-hand side {row.val} but no negative coefficient "
            "on a non-basic variable; the problem is infeasible."
        )

    obj_coeffs = tableau.objective.coeffs
    ratios = [obj_coeffs[i] / row.coeffs[i] for i in candidates]
    return candidates[idx_min(ratios)]


def dual_simplex_next(tableau):
    """Returns the next tableau in the dual simplex sequence."""
    if tableau.status.is_terminal:
        return tableau

    status = tableau_status(tableau)
    if status.is_terminal:
        return replace(tableau, status=status)

    row_idx = dual_pivot_row_idx(tableau)
    if row_idx is None:
        raise NotCanonicalError("Tableau is primal feasible but not optimal; use the primal simplex.")
    var_idx = dual_next_basic_idx(tableau, row_idx)

    logger.debug("Dual pivot: row %d leaves (basic variable %s), column %d enters",
                 row_idx, tableau.constraints[row_idx].basic_idx, var_idx)
    return pivot(tableau, row_idx, var_idx)


def dual_tableau_seq(tableau):
    """Yields the initial tableau and every tableau produced by successive dual pivots."""
    while True:
        yield tableau
        tableau = dual_simplex_next(tableau)


def dual_solve(tableau, max_iterations=None):
    """
    Solve a dual canonical tableau with the dual simplex method.

    :raises NotCanonicalError: if an objective coefficient is positive
    :raises PrimalInfeasibleError: if the constraints cannot be satisfied
    """
    if not is_dual_canonical(tableau):
        raise NotCanonicalError("The dual simplex needs every objective coefficient to be non-positive.")
    check_integrity(tableau)

    if max_iterations is None:
        max_iterations = default_max_iterations(tableau)

    iteration = 0
    for current in dual_tableau_seq(tableau):
        if current.status.is_terminal:
            logger.info("Dual simplex finished after %d iterations: %s", iteration, current.status.value)
            return current
        if iteration >= max_iterations:
            raise IterationLimitError(f"Maximum iterations ({max_iterations}) reached without convergence.")
        check_integrity(current)
        iteration += 1


def rhs_what_if(start, end, constraint_idx, delta, max_iterations=None):
    """
    Re-solve after changing the RHS of `start.constraints[constraint_idx]` by `delta`.

    The change is applied to the optimal `end` tableau directly: every row moves by
    `delta` times its coefficient in the constraint's slack column. Inside the RHS
    range the tableau stays optimal, outside it the dual simplex restores feasibility.

    :raises NotCanonicalError: if `end` is not an optimal tableau
    """
    if end.status is not Status.OPTIMAL:
        raise NotCanonicalError(
            f"RHS what-if analysis needs an optimal final tableau, got status '{end.status.value}'."
        )

    slack_idx = start.constraints[constraint_idx].basic_idx
    if end.objective.coeffs.dtype == object:
        delta = convert_number(delta, Fraction)

    constraints = [replace(c, val=c.val + delta * c.coeffs[slack_idx]) for c in end.constraints]
    objective = replace(end.objective, val=end.objective.val + delta * end.objective.coeffs[slack_idx])
    return dual_solve(Tableau(objective=objective, constraints=constraints), max_iterations)
