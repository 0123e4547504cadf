"""
Location analytics: market activity, search-driven trending suburbs and
similar-suburb suggestions.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from rich.console import Console
from rich.table import Table

from config.settings import (
    ACTIVE_STATUSES,
    DAY,
    NEW_LISTING_WINDOW_DAYS,
    SIMILARITY_THRESHOLD,
    SIMILARITY_WEIGHTS,
    TRENDING_SEARCH_WEIGHTS,
    TRENDING_WINDOW_DAYS,
)
from marketplace.database import City, Database, LocationSearch, Property, Province, RecordNotFound, Suburb
from marketplace.utils import format_zar, now_ts

logger = logging.getLogger(__name__)
console = Console()

LOCATION_COLUMNS = {
    "province": (Province, Property.province_id),
    "city": (City, Property.city_id),
    "suburb": (Suburb, Property.suburb_id),
}


@dataclass
class MarketActivity:
    location_type: str
    location_id: int
    total_listings: int = 0
    for_sale_count: int = 0
    to_rent_count: int = 0
    new_listings: int = 0
    avg_days_on_market: Optional[int] = None


@dataclass
class LocationProfile:
    """What two locations are compared on."""

    avg_sale_price: Optional[float] = None
    property_types: Set[str] = field(default_factory=set)
    listing_count: int = 0


def search_weight(age_seconds: int) -> float:
    """Weight of one search by age; 0 outside the trending window."""
    if age_seconds < 0:
        return 0.0
    for max_days, weight in TRENDING_SEARCH_WEIGHTS:
        if age_seconds <= max_days * DAY:
            return weight
    return 0.0


def trending_score(weighted_searches: float) -> int:
    """Scale weighted search volume to 0-100 (100 weighted searches saturate)."""
    return min(100, round(weighted_searches))


def _ratio_similarity(a: float, b: float) -> float:
    largest = max(a, b)
    return 1 - abs(a - b) / largest if largest > 0 else 0.0


def calculate_similarity(first: LocationProfile, second: LocationProfile) -> float:
    """
    Similarity of two locations in [0, 1].

    Average sale price, the overlap of property types (Jaccard) and listing
    density are scored separately and combined with SIMILARITY_WEIGHTS. A
    component that is missing on either side scores 0.
    """
    price = 0.0
    if first.avg_sale_price and second.avg_sale_price:
        price = _ratio_similarity(first.avg_sale_price, second.avg_sale_price)

    types = 0.0
    if first.property_types and second.property_types:
        union = first.property_types | second.property_types
        types = len(first.property_types & second.property_types) / len(union)

    density = 0.0
    if first.listing_count and second.listing_count:
        density = _ratio_similarity(first.listing_count, second.listing_count)

    return (
        price * SIMILARITY_WEIGHTS["price"]
        + types * SIMILARITY_WEIGHTS["property_types"]
        + density * SIMILARITY_WEIGHTS["density"]
    )


class LocationAnalytics:
    """Search trends and market activity per location."""

    def __init__(self, database: Database):
        self.database = database

    def record_search(self, suburb_id: int, user_id: Optional[int] = None, now: Optional[int] = None) -> None:
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            if not session.get(Suburb, suburb_id):
                raise RecordNotFound(f"Suburb {suburb_id} not found")
            session.add(LocationSearch(suburb_id=suburb_id, user_id=user_id, searched_at=now))
            session.commit()

    def market_activity(self, location_type: str, location_id: int, now: Optional[int] = None) -> MarketActivity:
        """
        Listing activity for a province, city or suburb.

        Days on market are whole days (rounded up) since each active listing
        was created, averaged and rounded; None when there are no listings.
        """
        if location_type not in LOCATION_COLUMNS:
            raise ValueError(f"location_type must be one of {tuple(LOCATION_COLUMNS)}")
        now = now if now is not None else now_ts()
        model, column = LOCATION_COLUMNS[location_type]

        with self.database.get_session() as session:
            if not session.get(model, location_id):
                raise RecordNotFound(f"{location_type.title()} {location_id} not found")
            rows = (
                session.query(Property.listing_type, Property.created_at)
                .filter(column == location_id, Property.status.in_(ACTIVE_STATUSES))
                .all()
            )

        activity = MarketActivity(location_type=location_type, location_id=location_id, total_listings=len(rows))
        if not rows:
            return activity

        created = [row.created_at or now for row in rows]
        days_on_market = [math.ceil(abs(now - ts) / DAY) for ts in created]
        activity.avg_days_on_market = round(sum(days_on_market) / len(days_on_market))
        activity.new_listings = sum(1 for ts in created if ts >= now - NEW_LISTING_WINDOW_DAYS * DAY)
        activity.for_sale_count = sum(1 for row in rows if row.listing_type == "sale")
        activity.to_rent_count = sum(1 for row in rows if row.listing_type == "rent")
        return activity

    def _weighted_searches(self, session, now: int, suburb_id: Optional[int] = None) -> Dict[int, List[float]]:
        query = session.query(LocationSearch.suburb_id, LocationSearch.searched_at).filter(
            LocationSearch.searched_at >= now - TRENDING_WINDOW_DAYS * DAY,
            LocationSearch.searched_at <= now,
        )
        if suburb_id is not None:
            query = query.filter(LocationSearch.suburb_id == suburb_id)
        weights: Dict[int, List[float]] = defaultdict(list)
        for row in query.all():
            weights[row.suburb_id].append(search_weight(now - row.searched_at))
        return weights

    def trending_score(self, suburb_id: int, now: Optional[int] = None) -> int:
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            weights = self._weighted_searches(session, now, suburb_id)
        return trending_score(sum(weights.get(suburb_id, [])))

    def trending_suburbs(self, limit: int = 10, now: Optional[int] = None) -> List[Dict]:
        """
        Suburbs ranked by recency-weighted search volume over the trending window.

        Args:
            limit: Maximum number of suburbs
            now: Unix reference time

        Returns:
            Dicts with id, name, slug, city, province, trending_score,
            search_count, listing_count and avg_price (None without sale listings)
        """
        if limit < 1:
            raise ValueError("limit must be positive")
        now = now if now is not None else now_ts()

        with self.database.get_session() as session:
            weights = self._weighted_searches(session, now)
            if not weights:
                return []
            suburbs = (
                session.query(Suburb, City.name.label("city"), Province.name.label("province"))
                .join(City, Suburb.city_id == City.id)
                .join(Province, City.province_id == Province.id)
                .filter(Suburb.id.in_(list(weights)))
                .all()
            )
            listings = (
                session.query(Property.suburb_id, Property.listing_type, Property.price)
                .filter(Property.suburb_id.in_(list(weights)), Property.status.in_(ACTIVE_STATUSES))
                .all()
            )

        listing_counts: Dict[int, int] = defaultdict(int)
        sale_prices: Dict[int, List[int]] = defaultdict(list)
        for suburb_id, listing_type, price in listings:
            listing_counts[suburb_id] += 1
            if listing_type == "sale":
                sale_prices[suburb_id].append(price)

        trending = []
        for suburb, city, province in suburbs:
            searches = weights[suburb.id]
            prices = sale_prices.get(suburb.id)
            trending.append(
                {
                    "id": suburb.id,
                    "name": suburb.name,
                    "slug": suburb.slug,
                    "city": city,
                    "province": province,
                    "weighted_searches": sum(searches),
                    "trending_score": trending_score(sum(searches)),
                    "search_count": len(searches),
                    "listing_count": listing_counts.get(suburb.id, 0),
                    "avg_price": round(sum(prices) / len(prices)) if prices else None,
                }
            )

        trending.sort(key=lambda s: (-s["weighted_searches"], -s["search_count"], s["name"]))
        for suburb in trending:
            del suburb["weighted_searches"]
        return trending[:limit]

    def _suburb_profiles(self, session) -> Dict[int, LocationProfile]:
        rows = (
            session.query(Property.suburb_id, Property.listing_type, Property.property_type, Property.price)
            .filter(Property.suburb_id.isnot(None), Property.status.in_(ACTIVE_STATUSES))
            .all()
        )
        profiles: Dict[int, LocationProfile] = defaultdict(LocationProfile)
        sale_prices: Dict[int, List[int]] = defaultdict(list)
        for suburb_id, listing_type, property_type, price in rows:
            profile = profiles[suburb_id]
            profile.listing_count += 1
            profile.property_types.add(property_type)
            if listing_type == "sale":
                sale_prices[suburb_id].append(price)
        for suburb_id, prices in sale_prices.items():
            profiles[suburb_id].avg_sale_price = sum(prices) / len(prices)
        return profiles

    def similar_locations(self, suburb_id: int, limit: int = 5) -> List[Dict]:
        """
        Suburbs that resemble the given one, same-city suburbs first.

        Only suburbs with active listings and a similarity of at least
        SIMILARITY_THRESHOLD are returned.
        """
        if limit < 1:
            raise ValueError("limit must be positive")
        with self.database.get_session() as session:
            target = session.get(Suburb, suburb_id)
            if not target:
                raise RecordNotFound(f"Suburb {suburb_id} not found")
            profiles = self._suburb_profiles(session)
            candidates = (
                session.query(Suburb, City.name.label("city"), Province.name.label("province"))
                .join(City, Suburb.city_id == City.id)
                .join(Province, City.province_id == Province.id)
                .filter(Suburb.id != suburb_id)
                .all()
            )

        target_profile = profiles.get(suburb_id, LocationProfile())
        similar = []
        for suburb, city, province in candidates:
            profile = profiles.get(suburb.id)
            if not profile or not profile.listing_count:
                continue
            score = calculate_similarity(target_profile, profile)
            if score < SIMILARITY_THRESHOLD:
                continue
            similar.append(
                {
                    "id": suburb.id,
                    "name": suburb.name,
                    "slug": suburb.slug,
                    "city": city,
                    "province": province,
                    "same_city": suburb.city_id == target.city_id,
                    "similarity_score": round(score, 2),
                    "avg_price": round(profile.avg_sale_price) if profile.avg_sale_price else None,
                    "listing_count": profile.listing_count,
                    "property_types": sorted(profile.property_types),
                }
            )

        similar.sort(key=lambda s: (not s["same_city"], -s["similarity_score"], s["name"]))
        logger.debug(f"{len(similar)} suburbs similar to {target.name}")
        return similar[:limit]

    def display_trending(self, trending: List[Dict]) -> None:
        if not trending:
            console.print("[yellow]No suburb searches in the trending window[/yellow]")
            return
        table = Table(title="Trending Suburbs", show_header=True)
        table.add_column("Suburb", style="cyan")
        table.add_column("City")
        table.add_column("Score", justify="right", style="magenta")
        table.add_column("Searches", justify="right")
        table.add_column("Listings", justify="right")
        table.add_column("Avg Price", justify="right", style="green")
        for row in trending:
            table.add_row(
                row["name"],
                row["city"],
                str(row["trending_score"]),
                str(row["search_count"]),
                str(row["listing_count"]),
                format_zar(row["avg_price"]) if row["avg_price"] is not None else "n/a",
            )
        console.print(table)

    def display_similar(self, name: str, similar: List[Dict]) -> None:
        if not similar:
            console.print(f"[yellow]No suburbs similar to {name}[/yellow]")
            return
        table = Table(title=f"Suburbs Like {name}", show_header=True)
        table.add_column("Suburb", style="cyan")
        table.add_column("City")
        table.add_column("Similarity", justify="right", style="magenta")
        table.add_column("Listings", justify="right")
        table.add_column("Avg Price", justify="right", style="green")
        for row in similar:
            table.add_row(
                row["name"],
                row["city"],
                f"{row['similarity_score']:.2f}",
                str(row["listing_count"]),
                format_zar(row["avg_price"]) if row["avg_price"] is not None else "n/a",
            )
        console.print(table)
