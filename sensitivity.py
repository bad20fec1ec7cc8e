"""
Sensitivity analysis on solutions to linear programs.

Every function takes the starting tableau of a problem and the final tableau
returned by `simplex.solve`. When the final tableau is not optimal there is
nothing to analyse and the functions return None.

The *shadow price* of a constraint is how much the objective would increase
if the RHS of that constraint increased by one unit: what you would pay for
one more unit of that resource. The *reduced cost* of a decision variable is
how much the objective would decrease if that variable were forced to a
positive level.

Ranges are reported as `Range(gt, lt)`, meaning `gt <= value <= lt`; a side
that never changes the optimal basis is None.
"""
import warnings
from collections import namedtuple

from tabulate import tabulate

from simplex import basic_solution, objective_value
from tableau import Status, basic_idxs, non_basic_idxs, tolerance
from utils import convert_to_fraction

Range = namedtuple("Range", ["gt", "lt"])


def decision_idxs(start):
    """The decision variables: those not basic in the starting tableau."""
    return non_basic_idxs(start.constraints)


def _is_optimal(end):
    return end.status is Status.OPTIMAL


def _prices(end, idxs):
    """Negated final objective coefficients of `idxs`."""
    if not _is_optimal(end):
        return None
    coeffs = end.objective.coeffs
    return [0 - coeffs[i] for i in idxs]  # 0 - x keeps zeros unsigned


def shadow_prices(start, end):
    """Returns the shadow price of each constraint, in the order of `start.constraints`."""
    return _prices(end, basic_idxs(start.constraints))


def reduced_costs(start, end):
    """Returns the reduced cost of each decision variable."""
    return _prices(end, decision_idxs(start))


# --- Objective coefficient ranging ---

def _non_basic_coeff_range(start, end, var_idx):
    # A non-basic variable enters once its final coefficient turns positive
    limit = start.objective.coeffs[var_idx] - end.objective.coeffs[var_idx]
    return Range(gt=None, lt=limit)


def _basic_coeff_range(start, end, var_idx):
    """
    Limits on the original coefficient of basic variable `var_idx` before some
    non-basic variable would enter the basis in its place.
    """
    initial_coeff = start.objective.coeffs[var_idx]
    row = end.constraint_map[var_idx]
    end_coeffs = end.objective.coeffs
    tol = tolerance(row)

    lower, upper = [], []
    for j in non_basic_idxs(end.constraints):
        row_coeff = row.coeffs[j]
        if abs(row_coeff) <= tol:
            continue
        limit = initial_coeff + end_coeffs[j] / row_coeff
        if row_coeff > 0:
            lower.append(limit)
        else:
            upper.append(limit)

    return Range(gt=max(lower, default=None), lt=min(upper, default=None))


def obj_coeff_sensitivity(start, end):
    """
    Returns, for each decision variable, the range of its original objective
    coefficient over which the optimal basis in `end` is unchanged.
    """
    if not _is_optimal(end):
        return None
    end_basic = set(basic_idxs(end.constraints))
    return [
        _basic_coeff_range(start, end, i) if i in end_basic else _non_basic_coeff_range(start, end, i)
        for i in decision_idxs(start)
    ]


# --- Right-hand side ranging ---

def _binding_rhs_range(constraint, end, slack_idx):
    """RHS range of a binding constraint: no basic variable of `end` may turn negative."""
    lower, upper = [], []
    for row in end.constraints:
        coeff = row.coeffs[slack_idx]
        if abs(coeff) <= tolerance(row):
            continue
        delta = -row.val / coeff
        if coeff > 0:
            lower.append(delta)
        else:
            upper.append(delta)

    gt = constraint.val + max(lower) if lower else None
    lt = constraint.val + min(upper) if upper else None
    return Range(gt=gt, lt=lt)


def rhs_sensitivity(start, end):
    """
    Returns, for each constraint of `start`, the range of its RHS over which the
    optimal basis in `end` is unchanged.
    """
    if not _is_optimal(end):
        return None

    ranges = []
    for constraint in start.constraints:
        slack_idx = constraint.basic_idx
        end_row = end.constraint_map.get(slack_idx)
        if end_row is not None:
            # Slack still basic: the RHS may drop by the unused amount
            ranges.append(Range(gt=constraint.val - end_row.val, lt=None))
        else:
            ranges.append(_binding_rhs_range(constraint, end, slack_idx))
    return ranges


# --- Reporting ---

def is_degenerate(tableau):
    """True when a basic variable sits at zero, so the optimal basis may not be unique."""
    tol = tolerance(tableau.objective)
    return any(abs(c.val) <= tol for c in tableau.constraints)


def _format_value(value, fraction_digits=None):
    if fraction_digits is None:
        return f"{float(value):.4f}"
    return convert_to_fraction(value, fraction_digits)


def format_range(range_tuple, current=None, fraction_digits=None):
    """Format a sensitivity range in a readable way."""
    lower, upper = range_tuple
    lower_str = "-∞" if lower is None else _format_value(lower, fraction_digits)
    upper_str = "+∞" if upper is None else _format_value(upper, fraction_digits)

    if current is not None:
        delta_lower = "any decrease" if lower is None else _format_value(current - lower, fraction_digits)
        delta_upper = "any increase" if upper is None else _format_value(upper - current, fraction_digits)
        return f"[{lower_str}, {upper_str}] (Δ-: {delta_lower}, Δ+: {delta_upper})"
    return f"[{lower_str}, {upper_str}]"


def sensitivity_report(start, end, fraction_digits=None):
    """
    Render shadow prices, reduced costs and both ranging tables as text.

    :param fraction_digits: show values as limited fractions instead of decimals
    """
    if not _is_optimal(end):
        return f"Sensitivity analysis not applicable: final tableau is {end.status.value}."
    if is_degenerate(end):
        warnings.warn("Sensitivity analysis on a degenerate optimal basis; ranges may be incomplete.", UserWarning)

    def fmt(value):
        return _format_value(value, fraction_digits)

    solution = basic_solution(end)

    variable_rows = []
    decisions = decision_idxs(start)
    for j, cost, rng in zip(decisions, reduced_costs(start, end), obj_coeff_sensitivity(start, end)):
        current = start.objective.coeffs[j]
        variable_rows.append([
            f"x{j + 1}", fmt(current), fmt(solution[j]), fmt(cost),
            format_range(rng, current, fraction_digits),
        ])

    constraint_rows = []
    for i, (constraint, price, rng) in enumerate(
            zip(start.constraints, shadow_prices(start, end), rhs_sensitivity(start, end))):
        constraint_rows.append([
            f"R{i + 1}", fmt(constraint.val), fmt(solution[constraint.basic_idx]), fmt(price),
            format_range(rng, constraint.val, fraction_digits),
        ])

    return "\n\n".join([
        f"Optimal value: {fmt(objective_value(end))}",
        tabulate(variable_rows, headers=["Variable", "Coefficient", "Value", "Reduced cost", "Coefficient range"],
                 disable_numparse=True),
        tabulate(constraint_rows, headers=["Constraint", "RHS", "Slack", "Shadow price", "RHS range"],
                 disable_numparse=True),
    ])
