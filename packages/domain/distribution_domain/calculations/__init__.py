"""Waterfall calculations.

Pure functions over schema models; no I/O.

- irr: periodic IRR (Newton with bracketed fallback) and equity multiple
- allocation: class grouping, effective pref, within-class rounding
- tiers: promote tier resolution and selection
- standard: single LP pool engine
- per_class: share-class priority engine
- metrics: summary metrics and lookback
- waterfall: engine router and scenario comparison
"""

from .irr import calculate_irr, equity_multiple, npv
from .allocation import (
    ClassGroup,
    allocate_within_class,
    calculate_class_preferred,
    effective_preferred_return,
    group_positions_by_class_priority,
    sorted_class_priorities,
)
from .tiers import resolve_promote_tiers, select_tier
from .metrics import calculate_lookback, summarize_distribution
from .standard import calculate_standard_waterfall
from .per_class import calculate_per_class_waterfall
from .waterfall import calculate_waterfall, compare_scenarios

__all__ = [
    "calculate_irr",
    "equity_multiple",
    "npv",
    "ClassGroup",
    "allocate_within_class",
    "calculate_class_preferred",
    "effective_preferred_return",
    "group_positions_by_class_priority",
    "sorted_class_priorities",
    "resolve_promote_tiers",
    "select_tier",
    "calculate_lookback",
    "summarize_distribution",
    "calculate_standard_waterfall",
    "calculate_per_class_waterfall",
    "calculate_waterfall",
    "compare_scenarios",
]
