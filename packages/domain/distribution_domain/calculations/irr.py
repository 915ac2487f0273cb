"""Internal rate of return for evenly spaced period cash flows.

Solves  sum(CF_t / (1 + r)^t) = 0  for r, with t = 0 for the first flow.

Newton's method is tried first (seeded at the guess, analytic derivative).
If it fails to converge or leaves the bounded range (-0.99, 10], a bracketed
Brent solve over that range is attempted. Non-convergence is never an error:
the best in-range estimate is returned, and None only when no estimate exists.
"""

import logging
import warnings
from decimal import Decimal
from typing import Optional, Sequence, Union

import numpy as np
from scipy.optimize import brentq, newton

logger = logging.getLogger(__name__)

IRR_LOWER_BOUND = -0.99
IRR_UPPER_BOUND = 10.0

Number = Union[Decimal, float, int]


def _in_range(rate: Optional[float]) -> bool:
    return rate is not None and np.isfinite(rate) and IRR_LOWER_BOUND < rate <= IRR_UPPER_BOUND


def _npv(rate: float, flows: np.ndarray, periods: np.ndarray) -> float:
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        return float(np.sum(flows / np.power(1.0 + rate, periods)))


def npv(rate: float, cash_flows: Sequence[Number]) -> float:
    """Net present value of period cash flows at a periodic rate."""
    flows = np.asarray([float(cf) for cf in cash_flows], dtype=float)
    return _npv(rate, flows, np.arange(flows.size, dtype=float))


def _npv_derivative(rate: float, flows: np.ndarray, periods: np.ndarray) -> float:
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        return float(np.sum(-periods * flows / np.power(1.0 + rate, periods + 1.0)))


def calculate_irr(
    cash_flows: Sequence[Number],
    guess: float = 0.1,
    tolerance: float = 1e-4,
    max_iterations: int = 100,
) -> Optional[float]:
    """Periodic IRR of a cash-flow series.

    Args:
        cash_flows: Flows per period; index 0 is the initial outlay (negative)
        guess: Starting rate for Newton's method
        tolerance: Convergence tolerance on the rate
        max_iterations: Iteration cap for each solver

    Returns:
        The rate as a float, or None when the series has no sign change or no
        estimate falls inside (-0.99, 10]

    Example:
        >>> round(calculate_irr([-100, 110]), 6)
        0.1
    """
    flows = np.asarray([float(cf) for cf in cash_flows], dtype=float)
    if flows.size < 2 or not (flows.min() < 0 < flows.max()):
        return None

    periods = np.arange(flows.size, dtype=float)

    def f(rate: float) -> float:
        return _npv(rate, flows, periods)

    def fprime(rate: float) -> float:
        return _npv_derivative(rate, flows, periods)

    estimate: Optional[float] = None
    converged = False
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        try:
            root, info = newton(
                f,
                x0=guess,
                fprime=fprime,
                tol=tolerance,
                maxiter=max_iterations,
                full_output=True,
                disp=False,
            )
            estimate = float(root)
            converged = bool(info.converged)
        except (ArithmeticError, ValueError) as exc:
            logger.debug("Newton IRR step failed: %s", exc)

    if converged and _in_range(estimate):
        return estimate

    logger.debug(
        "Newton IRR did not settle in range (estimate=%s, converged=%s); trying bracketed solve",
        estimate, converged,
    )

    low, high = f(IRR_LOWER_BOUND), f(IRR_UPPER_BOUND)
    if np.isfinite(low) and np.isfinite(high) and np.sign(low) != np.sign(high):
        try:
            return float(brentq(f, IRR_LOWER_BOUND, IRR_UPPER_BOUND, xtol=tolerance, maxiter=max_iterations))
        except (RuntimeError, ValueError) as exc:
            logger.debug("Bracketed IRR solve failed: %s", exc)

    if _in_range(estimate):
        return estimate
    return None


def equity_multiple(distributions: Decimal, capital: Decimal) -> Decimal:
    """Total distributions over capital; 0 when there is no capital."""
    if capital <= 0:
        return Decimal("0")
    return distributions / capital
