import logging
import math
import warnings
from dataclasses import replace

import numpy as np

from tableau import (
    IterationLimitError,
    NotCanonicalError,
    Status,
    Tableau,
    TableauCorruptionError,
    basic_idxs,
    check_integrity,
    eliminate_basic_var,
    set_basic_var,
    tolerance,
)
from utils import format_tableau, idx_max, idx_min

logger = logging.getLogger(__name__)

# Sentinel for rows that cannot bound the entering variable; larger than any ratio
PEGGED = math.inf
SMALL_PIVOT = 1e-8


# --- Entering and leaving variable selection ---

def next_basic_idx(objective):
    """
    Returns the index of the next variable to enter the basis by looking at the
    objective: the largest coefficient wins, the lowest index on ties.
    Returns None when no coefficient is positive.
    """
    coeffs = objective.coeffs
    if len(coeffs) == 0:
        return None
    var_idx = idx_max(coeffs)
    if coeffs[var_idx] <= tolerance(objective):
        return None
    return var_idx


def ratio(row, var_idx):
    """
    Returns the ratio of the `val` of a row to its coefficient for `var_idx`.
    This is how far the variable can grow before the row becomes binding.
    """
    coeff = row.coeffs[var_idx]
    if coeff == 0:
        return math.nan
    return row.val / coeff


def pegged_ratios(rows, var_idx):
    """
    Min-ratio test values, with rows that never bind `var_idx` pegged to PEGGED.
    A RHS within tolerance below zero counts as zero, so the row stays eligible.
    """
    ratios = []
    for row in rows:
        r = ratio(row, var_idx)
        tol = tolerance(row)
        if math.isnan(r) or row.coeffs[var_idx] <= tol or row.val < -tol:
            ratios.append(PEGGED)
        else:
            ratios.append(max(r, 0))
    return ratios


def pivot_row_idx(rows, var_idx):
    """
    Returns the index of the constraint that will be used for the next simplex
    pivot for the variable `var_idx`, i.e. the row whose basic variable leaves.
    Returns None when every row is pegged.
    """
    ratios = pegged_ratios(rows, var_idx)
    if all(r == PEGGED for r in ratios):
        return None
    return idx_min(ratios)


class PivotRule:
    """Strategy choosing the entering column and leaving row of a primal pivot."""
    name = "custom"

    def entering(self, tableau):
        raise NotImplementedError

    def leaving(self, tableau, var_idx):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class DantzigRule(PivotRule):
    """Largest objective coefficient enters; minimum ratio leaves, lowest row on ties."""
    name = "dantzig"

    def entering(self, tableau):
        return next_basic_idx(tableau.objective)

    def leaving(self, tableau, var_idx):
        return pivot_row_idx(tableau.constraints, var_idx)


class BlandRule(PivotRule):
    """
    Bland's anti-cycling rule:
    - Entering variable: smallest index among positive objective coefficients
    - Leaving variable: minimum ratio test, smallest basic variable index for ties
    """
    name = "bland"

    def entering(self, tableau):
        tol = tolerance(tableau.objective)
        for var_idx, coeff in enumerate(tableau.objective.coeffs):
            if coeff > tol:
                return var_idx
        return None

    def leaving(self, tableau, var_idx):
        ratios = pegged_ratios(tableau.constraints, var_idx)
        candidates = [i for i, r in enumerate(ratios) if r != PEGGED]
        if not candidates:
            return None

        tol = tolerance(tableau.objective)
        min_ratio = min(ratios[i] for i in candidates)
        tied = [i for i in candidates if ratios[i] - min_ratio <= tol]
        return min(tied, key=lambda i: tableau.constraints[i].basic_idx)


DANTZIG = DantzigRule()
BLAND = BlandRule()


# --- Status and canonical form ---

def unbounded_idx(tableau):
    """
    Returns the first variable with a positive objective coefficient whose column
    has no positive constraint coefficient, or None. Such a variable can grow forever.
    """
    tol = tolerance(tableau.objective)
    for var_idx, coeff in enumerate(tableau.objective.coeffs):
        if coeff > tol and all(c.coeffs[var_idx] <= tol for c in tableau.constraints):
            return var_idx
    return None


def tableau_status(tableau):
    """
    OPTIMAL when no non-basic objective coefficient is positive and every RHS is
    non-negative, UNBOUNDED when some improving column is unconstrained,
    IN_PROGRESS otherwise.
    """
    tol = tolerance(tableau.objective)
    basic = set(basic_idxs(tableau.constraints))
    obj_coeffs = tableau.objective.coeffs

    non_basic_ok = all(obj_coeffs[i] <= tol for i in range(tableau.num_vars) if i not in basic)
    feasible = all(c.val >= -tol for c in tableau.constraints)
    if non_basic_ok and feasible:
        return Status.OPTIMAL
    if unbounded_idx(tableau) is not None:
        return Status.UNBOUNDED
    return Status.IN_PROGRESS


def is_primal_canonical(tableau):
    """True when every constraint has a distinct basic variable and a non-negative RHS."""
    idxs = basic_idxs(tableau.constraints)
    if any(i is None or not 0 <= i < tableau.num_vars for i in idxs):
        return False
    if len(set(idxs)) != len(idxs):
        return False
    tol = tolerance(tableau.objective)
    return all(c.val >= -tol for c in tableau.constraints)


# --- Pivoting ---

def pivot(tableau, row_idx, var_idx):
    """
    Makes `var_idx` basic in constraint `row_idx` and eliminates it from every
    other row and from the objective. Returns a new tableau with its status set.
    """
    constraints = tableau.constraints
    pivot_element = constraints[row_idx].coeffs[var_idx]
    if tolerance(tableau.objective) and 0 < abs(pivot_element) < SMALL_PIVOT:
        warnings.warn(f"Small pivot element {pivot_element:.2e} may cause numerical instability.", UserWarning)

    basis_constraint = set_basic_var(constraints[row_idx], var_idx)
    new_constraints = [
        basis_constraint if i == row_idx else eliminate_basic_var(c, basis_constraint)
        for i, c in enumerate(constraints)
    ]
    new_objective = eliminate_basic_var(tableau.objective, basis_constraint)

    next_tableau = Tableau(objective=new_objective, constraints=new_constraints)
    return replace(next_tableau, status=tableau_status(next_tableau))


def simplex_next(tableau, pivot_rule=None):
    """
    Returns the next tableau in the simplex sequence. A tableau that has
    already converged is returned unchanged.
    """
    if tableau.status.is_terminal:
        return tableau

    status = tableau_status(tableau)
    if status.is_terminal:
        return replace(tableau, status=status)

    rule = pivot_rule or DANTZIG
    var_idx = rule.entering(tableau)
    row_idx = None if var_idx is None else rule.leaving(tableau, var_idx)
    if row_idx is None:
        raise NotCanonicalError(
            "Tableau admits no primal pivot but is neither optimal nor unbounded; "
            "a negative right-hand side needs the dual simplex."
        )

    logger.debug(
        "Pivot (%s): column %d enters, row %d leaves (basic variable %s)",
        rule.name, var_idx, row_idx, tableau.constraints[row_idx].basic_idx,
    )
    next_tableau = pivot(tableau, row_idx, var_idx)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Tableau after pivot:\n%s", format_tableau(next_tableau))
    return next_tableau


def tableau_seq(tableau, pivot_rule=None):
    """Yields the initial tableau and every tableau produced by successive pivots."""
    while True:
        yield tableau
        tableau = simplex_next(tableau, pivot_rule)


def default_max_iterations(tableau):
    return max(1000, tableau.num_constraints * tableau.num_vars * 10)


def solve(tableau, pivot_rule=None, max_iterations=None):
    """
    Solve the linear program using the primal simplex method.

    :param tableau: Tableau in canonical form with non-negative right-hand sides
    :param pivot_rule: PivotRule, DANTZIG by default
    :param max_iterations: pivot bound, see default_max_iterations
    :return: the first tableau of the pivot sequence that is OPTIMAL or UNBOUNDED
    """
    if not is_primal_canonical(tableau):
        raise NotCanonicalError(
            "Every constraint needs a distinct basic variable and a non-negative right-hand side."
        )
    check_integrity(tableau)

    rule = pivot_rule or DANTZIG
    if max_iterations is None:
        max_iterations = default_max_iterations(tableau)

    # Cycling detection
    visited = {frozenset(basic_idxs(tableau.constraints))}
    current = tableau
    iteration = 0

    while not current.status.is_terminal:
        if iteration >= max_iterations:
            raise IterationLimitError(f"Maximum iterations ({max_iterations}) reached without convergence.")

        current = simplex_next(current, rule)
        try:
            check_integrity(current)
        except TableauCorruptionError as e:
            raise TableauCorruptionError(f"Tableau corruption after pivot at iteration {iteration}. {e}") from e
        iteration += 1

        basis = frozenset(basic_idxs(current.constraints))
        if basis in visited and not current.status.is_terminal and not isinstance(rule, BlandRule):
            warnings.warn(
                f"Potential cycling detected at iteration {iteration}. Continuing with Bland's rule.",
                UserWarning,
            )
            rule = BLAND
        visited.add(basis)

    logger.info("Simplex finished after %d iterations: %s", iteration, current.status.value)
    return current


# --- Solution extraction ---

def basic_solution(tableau):
    """Values of all variables at the tableau's basic solution; non-basic variables are 0."""
    solution = np.zeros(tableau.num_vars, dtype=tableau.objective.coeffs.dtype)
    for constraint in tableau.constraints:
        solution[constraint.basic_idx] = constraint.val
    return solution


def objective_value(tableau):
    """The objective value at the tableau's basic solution (the objective RHS is stored negated)."""
    return -tableau.objective.val
