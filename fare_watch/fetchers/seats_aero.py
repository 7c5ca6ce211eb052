"""seats.aero partner API client for Qantas award availability."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp

from .base import BaseFetcher, FetchError
from .. import config
from ..models import Leg, NormalizedFlight
from ..normalizer import normalize_flights

logger = logging.getLogger(__name__)

SEARCH_URL = "https://seats.aero/partnerapi/search"
SOURCE = "qantas"
# Always ask for every cabin; the normalizer picks the tracked ones
ALL_CABINS = "economy,premium,business,first"
MAX_RESULTS = 500


class SeatsAeroFetcher(BaseFetcher):
    """Fetch award availability for a date window from seats.aero."""

    def __init__(
        self,
        key_file: Optional[Path] = None,
        timeout: float = config.FETCH_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.key_file = key_file or config.KEY_FILE
        self.timeout = timeout
        self.session = session

    @property
    def source_name(self) -> str:
        return "seats.aero"

    def _read_key(self) -> str:
        try:
            key = Path(self.key_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise FetchError(f"Cannot read seats.aero key from {self.key_file}: {e}") from e
        if not key:
            raise FetchError(f"seats.aero key file {self.key_file} is empty")
        return key

    @staticmethod
    def build_params(leg: Leg) -> dict:
        return {
            "origin_airport": leg.origin,
            "destination_airport": leg.destination,
            "sources": SOURCE,
            "cabins": ALL_CABINS,
            "start_date": leg.date_from,
            "end_date": leg.date_to,
            "order_by": "lowest_mileage",
            "take": str(MAX_RESULTS),
        }

    async def fetch_leg(
        self,
        leg: Leg,
        cabins: list[str],
        mode: str = "rewards",
    ) -> list[NormalizedFlight]:
        """Query one leg and normalize the response."""
        headers = {"Partner-Authorization": self._read_key()}
        params = self.build_params(leg)

        logger.info(
            "seats.aero: %s %s..%s (%s)", leg.route, leg.date_from, leg.date_to, mode
        )
        try:
            if self.session is not None:
                raw = await self._get(self.session, params, headers)
            else:
                async with aiohttp.ClientSession() as session:
                    raw = await self._get(session, params, headers)
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"seats.aero timed out after {self.timeout:.0f}s for {leg.route}"
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"seats.aero request failed for {leg.route}: {e}") from e

        flights = normalize_flights(raw, cabins, mode)
        logger.debug("seats.aero: %d record(s) -> %d flight(s)", len(raw), len(flights))
        return flights

    async def _get(
        self,
        session: aiohttp.ClientSession,
        params: dict,
        headers: dict,
    ) -> list[dict]:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(
            SEARCH_URL, params=params, headers=headers, timeout=timeout
        ) as resp:
            if not 200 <= resp.status < 300:
                body = await resp.text()
                raise FetchError(f"seats.aero {resp.status}: {body[:300]}", status=resp.status)
            payload = await resp.json(content_type=None)

        data = payload.get("data") if isinstance(payload, dict) else None
        return data if isinstance(data, list) else []
