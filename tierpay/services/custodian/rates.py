"""
Exchange rate source.

Spot USD rates from CoinGecko with a configured fallback, so checkout never
fails because the rate source is down.
"""

from decimal import Decimal, InvalidOperation

import aiohttp
from loguru import logger

from tierpay.config.constants import EXCHANGE_RATE_COIN_IDS


class ExchangeRateProvider:
    """Live USD rates per custodian asset."""

    def __init__(
        self,
        url: str,
        fallback_usd: Decimal,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.url = url
        self.fallback_usd = fallback_usd
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_settings(cls, settings) -> "ExchangeRateProvider":
        """Build a provider from application settings."""
        return cls(settings.exchange_rate_url, settings.exchange_rate_fallback_usd)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def get_usd_rate(self, asset_id: str) -> Decimal:
        """
        Get the USD price of one unit of an asset.

        Args:
            asset_id: Custodian asset id (e.g. BTC, BTC_TEST)

        Returns:
            Positive USD rate (fallback rate on any failure)
        """
        coin_id = EXCHANGE_RATE_COIN_IDS.get(asset_id)
        if coin_id is None:
            logger.warning(f"No rate mapping for {asset_id}, using fallback rate")
            return self.fallback_usd

        try:
            session = await self._get_session()
            async with session.get(
                self.url, params={"ids": coin_id, "vs_currencies": "usd"}
            ) as response:
                if response.status != 200:
                    raise ValueError(f"HTTP {response.status}")
                data = await response.json()
            rate = Decimal(str(data[coin_id]["usd"]))
            if rate <= 0:
                raise ValueError(f"non-positive rate {rate}")
        except (aiohttp.ClientError, TimeoutError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(
                f"Rate fetch for {asset_id} failed, using fallback "
                f"${self.fallback_usd}: {e}"
            )
            return self.fallback_usd

        logger.debug(f"Live rate {asset_id}: ${rate}")
        return rate
