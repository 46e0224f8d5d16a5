import pytest
from unittest.mock import AsyncMock

from lp_rebalancer.core.models import PoolInfo, Position, VolumeData


@pytest.fixture
def make_position():
    """Factory for positions on the [-20, 20] range used across scenarios."""
    def _make(active_bin=0, lower_bin=-20, upper_bin=20, value_usd=1_000.0, **kwargs):
        return Position(
            position_id=kwargs.pop('position_id', 'pos-1'),
            pool_id=kwargs.pop('pool_id', 'pool-a'),
            lower_bin=lower_bin,
            upper_bin=upper_bin,
            active_bin=active_bin,
            value_usd=value_usd,
            **kwargs,
        )
    return _make


@pytest.fixture
def fee_volume():
    """Pool data giving a $1,000 position $10/day of fees."""
    return VolumeData(
        volume_24h=2_000_000.0,
        volume_ratio=1.1,
        fees_24h=1_000.0,
        total_liquidity=100_000.0,
    )


@pytest.fixture
def market_data(fee_volume):
    source = AsyncMock()
    source.get_volume.return_value = fee_volume
    source.get_pool_info.return_value = PoolInfo(pool_id='pool-a', price=140.0, active_bin=0, apr=36.5)
    return source
