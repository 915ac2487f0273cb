"""Waterfall entry points.

calculate_waterfall routes to the per-class engine when class terms are
requested and class groups are available, otherwise to the standard engine.
compare_scenarios runs one structure against several cash-flow scenarios and
tabulates the headline metrics side by side.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from ..schemas import CashFlowScenario, DistributionResult, WaterfallCFG, WaterfallStructure
from .allocation import ClassGroup
from .per_class import calculate_per_class_waterfall
from .standard import calculate_standard_waterfall

logger = logging.getLogger(__name__)


def calculate_waterfall(
    cash_flows: Sequence,
    structure: WaterfallStructure,
    *,
    use_class_terms: bool = False,
    class_groups: Optional[Dict[int, ClassGroup]] = None,
    cfg: Optional[WaterfallCFG] = None,
) -> DistributionResult:
    """Calculate distributions with the appropriate engine.

    Example:
        groups = group_positions_by_class_priority(positions)
        result = calculate_waterfall(flows, structure, use_class_terms=True, class_groups=groups)
        result.by_class["P"].capital_returned
    """
    if use_class_terms and class_groups:
        return calculate_per_class_waterfall(cash_flows, structure, class_groups, cfg)
    if use_class_terms:
        logger.info("Class terms requested without class groups; using the standard waterfall")
    return calculate_standard_waterfall(cash_flows, structure, cfg)


def _as_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def compare_scenarios(
    scenarios: Sequence[CashFlowScenario],
    structure: WaterfallStructure,
    cfg: Optional[WaterfallCFG] = None,
) -> Dict[str, Any]:
    """Run the standard waterfall for each scenario.

    Returns:
        {
            "results": {scenario_id: DistributionResult},
            "comparison": DataFrame with one row per scenario:
                scenario_id, label, total_cash_flow, lp_irr, gp_irr,
                lp_equity_multiple, gp_equity_multiple, lp_total_return,
                gp_total_return, total_promote
        }
    """
    results: Dict[str, DistributionResult] = {}
    rows = []

    for scenario in scenarios:
        result = calculate_standard_waterfall(scenario.cash_flows, structure, cfg)
        results[scenario.id] = result
        summary = result.summary
        rows.append({
            "scenario_id": scenario.id,
            "label": scenario.label,
            "total_cash_flow": float(sum(scenario.cash_flows, Decimal("0"))),
            "lp_irr": summary.lp_irr,
            "gp_irr": summary.gp_irr,
            "lp_equity_multiple": _as_float(summary.lp_equity_multiple),
            "gp_equity_multiple": _as_float(summary.gp_equity_multiple),
            "lp_total_return": float(summary.lp_total_return),
            "gp_total_return": float(summary.gp_total_return),
            "total_promote": float(summary.total_promote),
        })

    comparison = pd.DataFrame(rows, columns=[
        "scenario_id",
        "label",
        "total_cash_flow",
        "lp_irr",
        "gp_irr",
        "lp_equity_multiple",
        "gp_equity_multiple",
        "lp_total_return",
        "gp_total_return",
        "total_promote",
    ])

    logger.info("Compared %d scenarios", len(rows))
    return {"results": results, "comparison": comparison}
