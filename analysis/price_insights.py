"""
Price insights: location price statistics, drill-down hierarchy, density heatmap
and the cached price_analytics snapshot.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
from rich.console import Console
from rich.table import Table
from sqlalchemy import func, or_

from config import Config
from config.settings import ACTIVE_STATUSES, AFFORDABLE_CEILING, LUXURY_FLOOR, PRICE_BUCKETS
from marketplace.database import (
    City,
    Database,
    PriceAnalytics,
    Property,
    Province,
    RecordNotFound,
    Suburb,
)
from marketplace.search import Bounds
from marketplace.utils import format_percentage, format_zar, now_ts, slugify

logger = logging.getLogger(__name__)
console = Console()

LOCATION_TYPES = ("province", "city", "suburb")
HIERARCHY_LEVELS = ("national", "province", "city")


@dataclass
class LocationStats:
    """Price statistics for one location."""

    location_type: str
    location: str
    total: int = 0
    average: int = 0
    minimum: int = 0
    maximum: int = 0
    median: int = 0
    p25: int = 0
    p75: int = 0
    property_types: List[Dict] = field(default_factory=list)
    listing_types: List[Dict] = field(default_factory=list)


@dataclass
class HeatmapCell:
    latitude: float
    longitude: float
    count: int
    weight: float
    intensity: float


def summarize_prices(prices: Iterable[float]) -> Dict[str, int]:
    """
    Summary statistics over a set of prices.

    Args:
        prices: Listing prices in rands

    Returns:
        Dict with count, average, minimum, maximum, median, p25 and p75 (zeros when empty)
    """
    values = np.asarray(list(prices), dtype=float)
    if values.size == 0:
        return {"count": 0, "average": 0, "minimum": 0, "maximum": 0, "median": 0, "p25": 0, "p75": 0}
    p25, median, p75 = np.percentile(values, [25, 50, 75])
    return {
        "count": int(values.size),
        "average": int(round(values.mean())),
        "minimum": int(values.min()),
        "maximum": int(values.max()),
        "median": int(round(median)),
        "p25": int(round(p25)),
        "p75": int(round(p75)),
    }


def price_buckets(prices: Iterable[float]) -> List[Dict]:
    """Count prices into the fixed ZAR price bands."""
    buckets = [{"label": label, "min": low, "max": high, "count": 0} for label, low, high in PRICE_BUCKETS]
    for price in prices:
        for bucket in buckets:
            if bucket["min"] <= price < bucket["max"]:
                bucket["count"] += 1
                break
    return buckets


def segment_shares(prices: List[float]) -> Dict[str, int]:
    """Affordable / mid-range / luxury split in whole percent."""
    if not prices:
        return {"affordable_percent": 0, "mid_range_percent": 0, "luxury_percent": 0}
    total = len(prices)
    affordable = sum(1 for p in prices if p < AFFORDABLE_CEILING)
    luxury = sum(1 for p in prices if p >= LUXURY_FLOOR)
    mid = total - affordable - luxury
    return {
        "affordable_percent": round(affordable / total * 100),
        "mid_range_percent": round(mid / total * 100),
        "luxury_percent": round(luxury / total * 100),
    }


def _distribution(values: List[str], total: int) -> List[Dict]:
    counts = Counter(values)
    return [
        {"type": key, "count": count, "percentage": round(count / (total or 1) * 100)}
        for key, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


class PriceInsights:
    """Aggregates listing prices by location."""

    def __init__(self, database: Database):
        self.database = database

    def location_stats(
        self,
        location_type: str,
        value: str,
        property_type: Optional[str] = None,
        listing_type: Optional[str] = None,
    ) -> LocationStats:
        """
        Price statistics and type distribution for a province, city or suburb.

        Args:
            location_type: "province", "city" or "suburb"
            value: Location name or slug
            property_type: Optional property type filter
            listing_type: Optional listing type filter

        Returns:
            LocationStats (zeros when nothing matches)
        """
        if location_type not in LOCATION_TYPES:
            raise ValueError(f"location_type must be one of {LOCATION_TYPES}")

        with self.database.get_session() as session:
            conditions = [Property.status.in_(ACTIVE_STATUSES), self._location_condition(session, location_type, value)]
            if property_type:
                conditions.append(Property.property_type == property_type)
            if listing_type:
                conditions.append(Property.listing_type == listing_type)

            rows = (
                session.query(Property.price, Property.property_type, Property.listing_type)
                .filter(*conditions)
                .all()
            )

        summary = summarize_prices(row.price for row in rows)
        total = summary["count"]
        logger.debug(f"Location stats for {location_type}={value}: {total} listings")
        return LocationStats(
            location_type=location_type,
            location=value,
            total=total,
            average=summary["average"],
            minimum=summary["minimum"],
            maximum=summary["maximum"],
            median=summary["median"],
            p25=summary["p25"],
            p75=summary["p75"],
            property_types=_distribution([row.property_type for row in rows], total),
            listing_types=_distribution([row.listing_type for row in rows], total),
        )

    def _location_condition(self, session, location_type: str, value: str):
        slug = slugify(value)
        if location_type == "province":
            province = (
                session.query(Province)
                .filter(or_(Province.slug == slug, func.lower(Province.name) == value.strip().lower()))
                .first()
            )
            if province:
                return or_(Property.province_id == province.id, func.lower(Property.province) == province.name.lower())
            return func.lower(Property.province) == value.lower()

        if location_type == "city":
            city = session.query(City).filter(City.slug == slug).first()
            if city:
                return or_(Property.city_id == city.id, func.lower(Property.city) == city.name.lower())
            return func.lower(Property.city) == value.lower()

        suburb = session.query(Suburb).filter(Suburb.slug == slug).first()
        address_match = func.lower(Property.address).like(f"%{value.lower()}%")
        if suburb:
            return or_(Property.suburb_id == suburb.id, address_match)
        return address_match

    def hierarchy(self, level: str, parent_id: Optional[int] = None) -> Dict:
        """
        Drill-down insights: national -> provinces, province -> cities, city -> suburbs.

        Args:
            level: "national", "province" or "city"
            parent_id: Province id (level "province") or city id (level "city")

        Returns:
            Dict with level, parent, tabs, summary, children and price_buckets
        """
        if level not in HIERARCHY_LEVELS:
            raise ValueError(f"level must be one of {HIERARCHY_LEVELS}")
        if level != "national" and parent_id is None:
            raise ValueError(f"level {level!r} requires a parent_id")

        with self.database.get_session() as session:
            if level == "national":
                parent = None
                children = session.query(Province).order_by(Province.name).all()
                group_col, scope = Property.province_id, None
            elif level == "province":
                parent = session.get(Province, parent_id)
                if not parent:
                    raise RecordNotFound(f"Province {parent_id} not found")
                children = session.query(City).filter_by(province_id=parent_id).order_by(City.name).all()
                group_col, scope = Property.city_id, Property.province_id == parent_id
            else:
                parent = session.get(City, parent_id)
                if not parent:
                    raise RecordNotFound(f"City {parent_id} not found")
                children = session.query(Suburb).filter_by(city_id=parent_id).order_by(Suburb.name).all()
                group_col, scope = Property.suburb_id, Property.city_id == parent_id

            query = session.query(group_col, Property.price).filter(Property.status.in_(ACTIVE_STATUSES))
            if scope is not None:
                query = query.filter(scope)
            rows = query.all()

        prices_by_child: Dict[int, List[int]] = defaultdict(list)
        for child_id, price in rows:
            prices_by_child[child_id].append(price)

        overall = summarize_prices(price for _, price in rows)
        child_summaries = []
        for child in children:
            stats = summarize_prices(prices_by_child.get(child.id, []))
            child_summaries.append(
                {
                    "id": child.id,
                    "name": child.name,
                    "listing_count": stats["count"],
                    "median_price": stats["median"],
                    "average_price": stats["average"],
                    "min_price": stats["minimum"],
                    "max_price": stats["maximum"],
                }
            )

        return {
            "level": level,
            "parent": {"id": parent.id, "name": parent.name} if parent else None,
            "tabs": [{"id": child.id, "name": child.name} for child in children],
            "summary": {
                "listing_count": overall["count"],
                "median_price": overall["median"],
                "average_price": overall["average"],
            },
            "children": child_summaries,
            "price_buckets": price_buckets(c["median_price"] for c in child_summaries if c["listing_count"]),
        }

    def heatmap(
        self,
        bounds: Bounds,
        grid_size: Optional[int] = None,
        property_types: Optional[List[str]] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> List[HeatmapCell]:
        """
        Listing density over a grid covering the bounds.

        Args:
            bounds: Map bounds
            grid_size: Cells per side (5 - 50)
            property_types: Optional property type filter
            min_price: Optional minimum price
            max_price: Optional maximum price

        Returns:
            Non-empty cells, row by row from the south-west corner
        """
        grid_size = grid_size if grid_size is not None else Config.HEATMAP_DEFAULT_GRID
        if not 5 <= grid_size <= 50:
            raise ValueError("grid_size must be between 5 and 50")
        bounds.validate()

        with self.database.get_session() as session:
            query = session.query(Property.latitude, Property.longitude).filter(
                Property.status.in_(ACTIVE_STATUSES),
                Property.latitude.between(bounds.south, bounds.north),
                Property.longitude.between(bounds.west, bounds.east),
            )
            if property_types:
                query = query.filter(Property.property_type.in_(property_types))
            if min_price is not None:
                query = query.filter(Property.price >= min_price)
            if max_price is not None:
                query = query.filter(Property.price <= max_price)
            points = query.all()

        if not points:
            return []

        lats = np.array([p[0] for p in points], dtype=float)
        lngs = np.array([p[1] for p in points], dtype=float)
        counts, _, _ = np.histogram2d(
            lats,
            lngs,
            bins=grid_size,
            range=[[bounds.south, bounds.north], [bounds.west, bounds.east]],
        )

        lat_step = (bounds.north - bounds.south) / grid_size
        lng_step = (bounds.east - bounds.west) / grid_size
        cells = []
        for i, j in zip(*np.nonzero(counts)):
            count = int(counts[i, j])
            cells.append(
                HeatmapCell(
                    latitude=bounds.south + (i + 0.5) * lat_step,
                    longitude=bounds.west + (j + 0.5) * lng_step,
                    count=count,
                    weight=min(count / 10, 1.0),
                    intensity=min(count / 5, 0.8),
                )
            )
        return cells

    def refresh_price_analytics(self) -> int:
        """
        Recompute the price_analytics snapshot for every province, city and suburb.

        Returns:
            Number of rows written
        """
        with self.database.get_session() as session:
            rows = (
                session.query(Property.province_id, Property.city_id, Property.suburb_id, Property.price)
                .filter(Property.status.in_(ACTIVE_STATUSES))
                .all()
            )
            locations = {
                "province": [p.id for p in session.query(Province.id).all()],
                "city": [c.id for c in session.query(City.id).all()],
                "suburb": [s.id for s in session.query(Suburb.id).all()],
            }

        grouped = {"province": defaultdict(list), "city": defaultdict(list), "suburb": defaultdict(list)}
        for province_id, city_id, suburb_id, price in rows:
            if province_id:
                grouped["province"][province_id].append(price)
            if city_id:
                grouped["city"][city_id].append(price)
            if suburb_id:
                grouped["suburb"][suburb_id].append(price)

        ts = now_ts()
        written = 0
        with self.database.get_session() as session:
            for location_type, ids in locations.items():
                for location_id in ids:
                    prices = grouped[location_type].get(location_id, [])
                    stats = summarize_prices(prices)
                    values = dict(
                        average_price=stats["average"],
                        median_price=stats["median"],
                        min_price=stats["minimum"],
                        max_price=stats["maximum"],
                        p25_price=stats["p25"],
                        p75_price=stats["p75"],
                        price_count=stats["count"],
                        updated_at=ts,
                        **segment_shares(prices),
                    )
                    record = (
                        session.query(PriceAnalytics)
                        .filter_by(location_type=location_type, location_id=location_id)
                        .first()
                    )
                    if record:
                        for key, value in values.items():
                            setattr(record, key, value)
                    else:
                        session.add(PriceAnalytics(location_type=location_type, location_id=location_id, **values))
                    written += 1
            session.commit()

        logger.info(f"Refreshed price analytics for {written} locations")
        return written

    def get_price_analytics(self, location_type: str, location_id: int) -> Optional[PriceAnalytics]:
        """Get the cached snapshot for a location."""
        if location_type not in LOCATION_TYPES:
            raise ValueError(f"location_type must be one of {LOCATION_TYPES}")
        with self.database.get_session() as session:
            return (
                session.query(PriceAnalytics)
                .filter_by(location_type=location_type, location_id=location_id)
                .first()
            )

    def display_location_stats(self, stats: LocationStats) -> None:
        """
        Print location statistics.

        Args:
            stats: Result of location_stats
        """
        if not stats.total:
            console.print(f"[yellow]No active listings in {stats.location_type} {stats.location}[/yellow]")
            return

        table = Table(title=f"Prices in {stats.location} ({stats.location_type})", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="green")
        table.add_row("Listings", str(stats.total))
        table.add_row("Average", format_zar(stats.average))
        table.add_row("Median", format_zar(stats.median))
        table.add_row("25th percentile", format_zar(stats.p25))
        table.add_row("75th percentile", format_zar(stats.p75))
        table.add_row("Minimum", format_zar(stats.minimum))
        table.add_row("Maximum", format_zar(stats.maximum))
        console.print(table)

        types = Table(title="Property Types", show_header=True)
        types.add_column("Type", style="cyan")
        types.add_column("Count", justify="right")
        types.add_column("Share", justify="right", style="magenta")
        for row in stats.property_types:
            types.add_row(row["type"], str(row["count"]), format_percentage(row["percentage"]))
        console.print(types)

    def display_hierarchy(self, insights: Dict) -> None:
        title = insights["parent"]["name"] if insights["parent"] else "South Africa"
        table = Table(title=f"Price Insights: {title}", show_header=True)
        table.add_column("Location", style="cyan")
        table.add_column("Listings", justify="right")
        table.add_column("Median", justify="right", style="green")
        table.add_column("Average", justify="right", style="yellow")
        for child in insights["children"]:
            table.add_row(
                child["name"],
                str(child["listing_count"]),
                format_zar(child["median_price"]) if child["listing_count"] else "n/a",
                format_zar(child["average_price"]) if child["listing_count"] else "n/a",
            )
        console.print(table)

        summary = insights["summary"]
        console.print(
            f"\n[bold]Total:[/bold] {summary['listing_count']} listings, "
            f"median {format_zar(summary['median_price'])}, average {format_zar(summary['average_price'])}"
        )
