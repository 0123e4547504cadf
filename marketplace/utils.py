"""
Utility functions for the property marketplace.
"""

import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Optional

from config.settings import EARTH_RADIUS_KM


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def now_ts() -> int:
    """Current Unix timestamp in seconds."""
    return int(time.time())


def format_zar(amount: Optional[float]) -> str:
    """
    Format a rand amount for display.

    Args:
        amount: Amount in rands

    Returns:
        Formatted string (e.g., "R 1.25M" or "R 850,000")
    """
    if amount is None or (isinstance(amount, float) and math.isnan(amount)):
        return "n/a"
    if amount >= 1_000_000:
        return f"R {amount / 1_000_000:.2f}M"
    return f"R {amount:,.0f}"


def cents_to_rand(cents: float) -> float:
    return cents / 100


def format_percentage(value: float) -> str:
    """
    Format percentage with one decimal place.

    Args:
        value: Percentage value (0-100)

    Returns:
        Formatted string (e.g., "45.0%")
    """
    return f"{value:.1f}%"


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug for location and agency names."""
    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    return value.strip("-")


def ts_to_datetime(timestamp: int) -> datetime:
    """
    Convert Unix timestamp to datetime.

    Args:
        timestamp: Unix timestamp

    Returns:
        Datetime object in UTC
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def today_iso(timestamp: Optional[int] = None) -> str:
    ts = timestamp if timestamp is not None else now_ts()
    return ts_to_datetime(ts).strftime("%Y-%m-%d")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two coordinates.

    Returns:
        Distance in kilometres
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def safe_division(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is zero.

    Args:
        numerator: Numerator
        denominator: Denominator
        default: Default value if division by zero

    Returns:
        Division result or default
    """
    if denominator == 0:
        return default
    return numerator / denominator
