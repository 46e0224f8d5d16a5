"""
Liquidity position rebalancing monitor.

Scores concentrated-liquidity positions on an economic cost-benefit basis,
keeps a retention-bounded snapshot history per pool and position, and runs
the multi-cadence monitoring scheduler that ties them together.
"""

__version__ = "0.1.0"
