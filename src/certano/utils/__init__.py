"""Utility helpers."""

from certano.utils.time_utils import parse_iso, utc_now, utc_now_iso

__all__ = ["parse_iso", "utc_now", "utc_now_iso"]
