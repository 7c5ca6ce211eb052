"""Base fetcher interface."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Leg, NormalizedFlight


class FetchError(RuntimeError):
    """A leg could not be fetched; the whole leg counts as unavailable."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BaseFetcher(ABC):
    """Abstract base class for award availability sources."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Name of the availability source."""
        ...

    @abstractmethod
    async def fetch_leg(
        self,
        leg: Leg,
        cabins: list[str],
        mode: str = "rewards",
    ) -> list[NormalizedFlight]:
        """
        Fetch award availability for one leg's date window.

        Args:
            leg: Route and date window to search
            cabins: Cabin names to extract (business/premium/economy/first)
            mode: "rewards" for classic award seats, "any" to include Points+Pay

        Returns:
            Normalized flights sorted by date.

        Raises:
            FetchError: on timeout, transport error or a non-success response.
        """
        ...
