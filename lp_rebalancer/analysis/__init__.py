"""
Analysis package: position geometry, fee economics, trend signals and
rebalance decision policies.
"""

from .bins import BinUtilization, PositionGeometry, bin_utilization, compute_geometry, gini_coefficient
from .decision import (
    AutomationPreset,
    CostBenefitPolicy,
    DecisionEngine,
    DecisionError,
    DecisionPolicy,
    MarketContext,
    PRESETS,
    ScoringPolicy,
    build_policy,
    get_policy,
    get_preset,
)
from .fees import fee_performance, fee_projection, format_hours, volume_ratio_from_history
from .trend import IntraDayContext, Momentum, Signals, analyze, calculate_volatility, volume_trend

__all__ = [
    "BinUtilization",
    "PositionGeometry",
    "bin_utilization",
    "compute_geometry",
    "gini_coefficient",
    "AutomationPreset",
    "CostBenefitPolicy",
    "DecisionEngine",
    "DecisionError",
    "DecisionPolicy",
    "MarketContext",
    "PRESETS",
    "ScoringPolicy",
    "build_policy",
    "get_policy",
    "get_preset",
    "fee_performance",
    "fee_projection",
    "format_hours",
    "volume_ratio_from_history",
    "IntraDayContext",
    "Momentum",
    "Signals",
    "analyze",
    "calculate_volatility",
    "volume_trend",
]
