"""
Pool factory for creating backend pools from environment configuration.
"""
import logging
from typing import Optional

import httpx

from contracts.pool_options import PoolOptions
from core.backend_pool import BackendPool
from core.pool_metrics import PoolMetrics

logger = logging.getLogger(__name__)


class PoolFactory:
    """
    Factory class for creating BackendPool instances.
    """

    @staticmethod
    def create_pool(
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[PoolMetrics] = None,
        **overrides,
    ) -> BackendPool:
        """
        Create a backend pool whose defaults come from Config.

        Args:
            client (Optional[httpx.AsyncClient]): Probe client; the pool owns one if omitted.
            metrics (Optional[PoolMetrics]): Metrics sink; a private registry is used if omitted.
            **overrides: PoolOptions fields taking precedence over Config.

        Returns:
            BackendPool: A pool with no backends registered yet.

        Raises:
            pydantic.ValidationError: If the configured values are out of range.
        """
        options = PoolOptions.from_config(**overrides)
        logger.info(f"Creating backend pool with options from config (overrides={sorted(overrides)})")
        return BackendPool(options=options, client=client, metrics=metrics)
