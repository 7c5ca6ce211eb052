"""Award availability fetchers."""

from .base import BaseFetcher, FetchError
from .seats_aero import SeatsAeroFetcher

__all__ = ["BaseFetcher", "FetchError", "SeatsAeroFetcher"]
