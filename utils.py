# utils.py
from fractions import Fraction

from tabulate import tabulate


def idx_min(values, key=None):
    """Index of the first minimum of `values` (optionally compared through `key`)."""
    key = key or (lambda v: v)
    return min(range(len(values)), key=lambda i: key(values[i]))


def idx_max(values, key=None):
    """Index of the first maximum of `values` (optionally compared through `key`)."""
    key = key or (lambda v: v)
    return max(range(len(values)), key=lambda i: key(values[i]))


def limit_fraction(value, fraction_digits=3):
    """Limit the number of digits in a fraction's numerator and denominator."""
    if value is None or abs(float(value)) < 1e-10:
        return Fraction(0)

    try:
        frac = Fraction(value) if not isinstance(value, Fraction) else value
    except (TypeError, ValueError):
        return Fraction(0)

    max_value = 10 ** fraction_digits - 1
    n, d = frac.numerator, frac.denominator

    if abs(n) > max_value or abs(d) > max_value:
        return Fraction(float(frac)).limit_denominator(max_value)
    return frac


def convert_to_fraction(value, fraction_digits=3, force_float=False):
    """
    Convert a decimal value to a fraction string or formatted float.

    Args:
        value: The numerical value to convert.
        fraction_digits: Max digits for numerator/denominator or float precision.
        force_float: If True, always return formatted float.

    Returns:
        Formatted string representation.
    """
    try:
        float_value = float(value)
        if force_float:
            return f"{float_value:.{fraction_digits}f}"

        frac = limit_fraction(Fraction(value) if isinstance(value, Fraction) else float_value, fraction_digits)
        num, den = frac.numerator, frac.denominator

        # Fall back to decimals when the fraction would not be readable
        max_value = 10 ** fraction_digits
        if abs(num) > max_value or den > max_value or abs(float(frac) - float_value) > 1e-9:
            return f"{float_value:.{fraction_digits}f}"
        return str(frac)

    except (ValueError, TypeError, OverflowError):
        return str(value)  # Return original if conversion fails


def format_tableau(tableau, fraction_digits=None):
    """
    Render a tableau as a text table: one column per variable plus RHS and basis.

    :param fraction_digits: show entries as limited fractions instead of decimals
    """
    headers = [f"x{i + 1}" for i in range(tableau.num_vars)] + ["RHS", "Basis"]

    def cell(v):
        if fraction_digits is None:
            return float(v)
        return convert_to_fraction(v, fraction_digits)

    rows = [["z"] + [cell(v) for v in tableau.objective.coeffs] + [cell(tableau.objective.val), ""]]
    for i, constraint in enumerate(tableau.constraints):
        basis = "?" if constraint.basic_idx is None else f"x{constraint.basic_idx + 1}"
        rows.append([f"R{i + 1}"] + [cell(v) for v in constraint.coeffs] + [cell(constraint.val), basis])

    return tabulate(rows, headers=headers, floatfmt=".4f", disable_numparse=fraction_digits is not None)
