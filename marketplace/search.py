"""
Property search with filtering, sorting, pagination and result caching.
"""

import hashlib
import json
import logging
import math
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_

from config import Config
from config.settings import ACTIVE_STATUSES, PRICE_BUCKETS, SIMILAR_PRICE_BAND
from marketplace.database import Database, Property, RecordNotFound, Suburb
from marketplace.utils import haversine_km

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("price_asc", "price_desc", "date_desc", "date_asc", "suburb_asc", "suburb_desc")
DEFAULT_SORT = "date_desc"

# Public status -> stored statuses
STATUS_FILTER_MAP = {
    "available": ("available", "published"),
    "sold": ("sold",),
    "let": ("rented",),
    "under_offer": ("pending",),
}

# Stored status -> public status
STATUS_DISPLAY_MAP = {
    "sold": "sold",
    "rented": "let",
    "pending": "under_offer",
}


@dataclass
class Bounds:
    north: float
    south: float
    east: float
    west: float

    def validate(self) -> None:
        if self.north <= self.south:
            raise ValueError("Bounds north must be greater than south")
        if self.east <= self.west:
            raise ValueError("Bounds east must be greater than west")


@dataclass
class SearchFilters:
    """Search filters. Location fields accept slugs or plain names."""

    province: Optional[str] = None
    city: Optional[str] = None
    suburbs: List[str] = field(default_factory=list)
    property_types: List[str] = field(default_factory=list)
    listing_type: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_bedrooms: Optional[int] = None
    max_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    min_area: Optional[int] = None
    max_area: Optional[int] = None
    statuses: List[str] = field(default_factory=list)
    bounds: Optional[Bounds] = None


@dataclass
class SearchResults:
    properties: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    has_more: bool


def map_status(db_status: str) -> str:
    """Map a stored listing status to the public status."""
    return STATUS_DISPLAY_MAP.get(db_status, "available")


class PropertySearchService:
    """Searches published listings."""

    def __init__(self, database: Database, cache_ttl: Optional[int] = None, max_cache_entries: Optional[int] = None):
        """
        Initialize search service.

        Args:
            database: Database instance
            cache_ttl: Seconds to keep cached result pages (Config.SEARCH_CACHE_TTL by default)
            max_cache_entries: Cached pages kept before the oldest is evicted
        """
        self.database = database
        self.cache_ttl = Config.SEARCH_CACHE_TTL if cache_ttl is None else cache_ttl
        self.max_cache_entries = Config.SEARCH_CACHE_MAX_ENTRIES if max_cache_entries is None else max_cache_entries
        if self.max_cache_entries < 1:
            raise ValueError("max_cache_entries must be at least 1")
        self.cache: Dict[str, Tuple[float, Any]] = {}  # key -> (cached_at, value)

    def search(
        self,
        filters: Optional[SearchFilters] = None,
        sort: str = DEFAULT_SORT,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> SearchResults:
        """
        Search properties with filters, sorting and pagination.

        Args:
            filters: Search filters (none means every visible listing)
            sort: One of SORT_OPTIONS; unknown values sort newest first
            page: 1-based page number
            page_size: Results per page

        Returns:
            SearchResults for the requested page
        """
        filters = filters or SearchFilters()
        if page_size is None:
            page_size = Config.DEFAULT_PAGE_SIZE
        if page < 1:
            raise ValueError("page must be at least 1")
        if not 1 <= page_size <= Config.MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {Config.MAX_PAGE_SIZE}")
        if filters.bounds:
            filters.bounds.validate()
        if sort not in SORT_OPTIONS:
            logger.debug(f"Unknown sort option {sort!r}, using {DEFAULT_SORT}")
            sort = DEFAULT_SORT

        cache_key = self._cache_key(filters, sort, page, page_size)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        offset = (page - 1) * page_size
        with self.database.get_session() as session:
            conditions = self._build_conditions(filters)
            query = session.query(Property).filter(and_(*conditions))
            total = query.count()
            rows = (
                query.order_by(*self._sort_order(sort))
                .offset(offset)
                .limit(page_size)
                .all()
            )
            suburb_ids = {row.suburb_id for row in rows if row.suburb_id}
            suburb_names = {}
            if suburb_ids:
                suburb_names = {
                    s.id: s.name for s in session.query(Suburb).filter(Suburb.id.in_(suburb_ids)).all()
                }

        images = self.database.get_images_for_properties([row.id for row in rows])
        agents = self.database.get_agent_directory(row.agent_id for row in rows)

        results = SearchResults(
            properties=[self._to_result(row, images, agents, suburb_names) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
            has_more=offset + page_size < total,
        )
        self._cache_put(cache_key, results)
        logger.info(f"Search matched {total} properties (page {page})")
        return results

    def get_filter_counts(self, filters: Optional[SearchFilters] = None) -> Dict[str, Any]:
        """
        Facet counts for the listings matching a set of filters.

        Args:
            filters: Base filters the facets are computed under

        Returns:
            Dict with total, by_property_type (type -> count) and by_price_range
            (one entry per price band, half-open so each listing counts once)
        """
        filters = filters or SearchFilters()
        if filters.bounds:
            filters.bounds.validate()

        cache_key = self._cache_key(filters, "counts", 0, 0)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        with self.database.get_session() as session:
            conditions = self._build_conditions(filters)
            total = session.query(func.count(Property.id)).filter(and_(*conditions)).scalar() or 0
            type_rows = (
                session.query(Property.property_type, func.count(Property.id))
                .filter(and_(*conditions))
                .group_by(Property.property_type)
                .all()
            )
            by_price_range = []
            for label, low, high in PRICE_BUCKETS:
                range_conditions = conditions + [Property.price >= low]
                if high != float("inf"):
                    range_conditions.append(Property.price < high)
                count = session.query(func.count(Property.id)).filter(and_(*range_conditions)).scalar() or 0
                by_price_range.append({"range": label, "count": count})

        counts = {
            "total": total,
            "by_property_type": {property_type: count for property_type, count in type_rows},
            "by_price_range": by_price_range,
        }
        self._cache_put(cache_key, counts)
        return counts

    def clear_cache(self) -> None:
        self.cache.clear()

    def _cache_get(self, key: str) -> Optional[Any]:
        cached = self.cache.get(key)
        if cached is None:
            return None
        if time.time() - cached[0] >= self.cache_ttl:
            del self.cache[key]
            return None
        logger.debug(f"Search cache hit {key}")
        return cached[1]

    def _cache_put(self, key: str, value: Any) -> None:
        now = time.time()
        expired = [k for k, (cached_at, _) in self.cache.items() if now - cached_at >= self.cache_ttl]
        for k in expired:
            del self.cache[k]
        while len(self.cache) >= self.max_cache_entries:
            oldest = min(self.cache, key=lambda k: self.cache[k][0])
            del self.cache[oldest]
        self.cache[key] = (now, value)

    def similar_properties(
        self,
        property_id: int,
        radius_km: float = 2.0,
        limit: int = 10,
        include_price_range: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Find listings of the same type near a reference listing.

        Args:
            property_id: Reference listing
            radius_km: Search radius (0.5 - 10 km)
            limit: Maximum results (1 - 20)
            include_price_range: Restrict to within 30% of the reference price

        Returns:
            Listings ordered by distance, each with a distance_km field
        """
        if not 0.5 <= radius_km <= 10:
            raise ValueError("radius_km must be between 0.5 and 10")
        if not 1 <= limit <= 20:
            raise ValueError("limit must be between 1 and 20")

        reference = self.database.get_property(property_id)
        if not reference:
            raise RecordNotFound(f"Property {property_id} not found")
        if reference.latitude is None or reference.longitude is None:
            logger.warning(f"Property {property_id} has no coordinates")
            return []

        # Bounding box prefilter, then exact distance
        lat_delta = radius_km / 111.0
        lng_delta = radius_km / max(111.0 * math.cos(math.radians(reference.latitude)), 1e-6)
        conditions = [
            Property.status.in_(ACTIVE_STATUSES),
            Property.id != property_id,
            Property.property_type == reference.property_type,
            Property.latitude.between(reference.latitude - lat_delta, reference.latitude + lat_delta),
            Property.longitude.between(reference.longitude - lng_delta, reference.longitude + lng_delta),
        ]
        if include_price_range and reference.price:
            band = reference.price * SIMILAR_PRICE_BAND
            conditions.append(Property.price.between(reference.price - band, reference.price + band))

        with self.database.get_session() as session:
            candidates = session.query(Property).filter(and_(*conditions)).all()

        nearby = []
        for row in candidates:
            distance = haversine_km(reference.latitude, reference.longitude, row.latitude, row.longitude)
            if distance <= radius_km:
                nearby.append((distance, row))
        nearby.sort(key=lambda pair: (pair[0], pair[1].id))

        return [
            {
                "id": row.id,
                "title": row.title,
                "price": row.price,
                "property_type": row.property_type,
                "listing_type": row.listing_type,
                "bedrooms": row.bedrooms,
                "bathrooms": row.bathrooms,
                "area": row.area,
                "city": row.city,
                "province": row.province,
                "main_image": row.main_image,
                "distance_km": round(distance, 1),
            }
            for distance, row in nearby[:limit]
        ]

    def _build_conditions(self, filters: SearchFilters) -> list:
        conditions = []

        if filters.statuses:
            status_values = set()
            for status in filters.statuses:
                status_values.update(STATUS_FILTER_MAP.get(status, (status,)))
            conditions.append(Property.status.in_(sorted(status_values)))
        else:
            conditions.append(Property.status.in_(ACTIVE_STATUSES))

        # Locations: ids when the slug resolves, case-insensitive text otherwise
        if filters.province:
            province = self.database.get_province_by_slug(filters.province)
            if province:
                conditions.append(Property.province_id == province.id)
            else:
                conditions.append(func.lower(Property.province) == filters.province.lower())

        if filters.city:
            city = self.database.get_city_by_slug(filters.city)
            if city:
                conditions.append(Property.city_id == city.id)
            else:
                conditions.append(func.lower(Property.city) == filters.city.lower())

        if filters.suburbs:
            suburb_conditions = []
            for name in filters.suburbs:
                suburb = self.database.get_suburb_by_slug(name)
                if suburb:
                    suburb_conditions.append(Property.suburb_id == suburb.id)
                else:
                    suburb_conditions.append(func.lower(Property.address).like(f"%{name.lower()}%"))
            conditions.append(or_(*suburb_conditions))

        if filters.property_types:
            conditions.append(Property.property_type.in_(filters.property_types))
        if filters.listing_type:
            conditions.append(Property.listing_type == filters.listing_type)

        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)
        if filters.min_bedrooms is not None:
            conditions.append(Property.bedrooms >= filters.min_bedrooms)
        if filters.max_bedrooms is not None:
            conditions.append(Property.bedrooms <= filters.max_bedrooms)
        if filters.min_bathrooms is not None:
            conditions.append(Property.bathrooms >= filters.min_bathrooms)
        if filters.min_area is not None:
            conditions.append(Property.area >= filters.min_area)
        if filters.max_area is not None:
            conditions.append(Property.area <= filters.max_area)

        if filters.bounds:
            b = filters.bounds
            conditions.append(Property.latitude.between(b.south, b.north))
            conditions.append(Property.longitude.between(b.west, b.east))

        return conditions

    @staticmethod
    def _sort_order(sort: str) -> list:
        orders = {
            "price_asc": [Property.price.asc()],
            "price_desc": [Property.price.desc()],
            "date_desc": [Property.created_at.desc()],
            "date_asc": [Property.created_at.asc()],
            "suburb_asc": [Property.address.asc()],
            "suburb_desc": [Property.address.desc()],
        }
        return orders[sort] + [Property.id.asc()]

    @staticmethod
    def _to_result(
        row: Property,
        images: Dict[int, List[str]],
        agents: Dict[int, Dict],
        suburb_names: Dict[int, str],
    ) -> Dict[str, Any]:
        agent = agents.get(row.agent_id, {})
        return {
            "id": row.id,
            "title": row.title,
            "price": row.price,
            "suburb": suburb_names.get(row.suburb_id) or row.address or row.city,
            "city": row.city,
            "province": row.province,
            "property_type": row.property_type,
            "listing_type": row.listing_type,
            "bedrooms": row.bedrooms,
            "bathrooms": row.bathrooms,
            "area": row.area,
            "levy": row.levies,
            "rates": row.rates_and_taxes,
            "status": map_status(row.status),
            "listed_date": row.created_at,
            "images": images.get(row.id, []),
            "agent": {
                "id": row.agent_id,
                "name": agent.get("name"),
                "agency": agent.get("agency"),
            },
            "latitude": row.latitude,
            "longitude": row.longitude,
        }

    @staticmethod
    def _cache_key(filters: SearchFilters, sort: str, page: int, page_size: int) -> str:
        payload = json.dumps(asdict(filters), sort_keys=True, default=str)
        digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()[:16]
        return f"property:search:{digest}:{sort}:{page}:{page_size}"
