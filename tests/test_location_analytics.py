import pytest

from analysis.location_analytics import (
    LocationAnalytics,
    LocationProfile,
    calculate_similarity,
    search_weight,
    trending_score,
)
from marketplace.database import RecordNotFound

DAY = 86400


@pytest.fixture
def analytics(db):
    return LocationAnalytics(db)


def test_search_weight():
    assert search_weight(0) == 4.0
    assert search_weight(7 * DAY) == 4.0
    assert search_weight(7 * DAY + 1) == 2.0
    assert search_weight(20 * DAY) == 1.0
    assert search_weight(30 * DAY) == 0.5
    assert search_weight(31 * DAY) == 0.0
    assert search_weight(-1) == 0.0
    assert trending_score(250.0) == 100


def test_calculate_similarity():
    sandton = LocationProfile(avg_sale_price=2_000_000, property_types={"house", "apartment"}, listing_count=10)
    rosebank = LocationProfile(avg_sale_price=1_500_000, property_types={"house"}, listing_count=5)

    # 0.75 price, 0.5 type overlap, 0.5 density
    assert calculate_similarity(sandton, rosebank) == pytest.approx(0.6)
    assert calculate_similarity(sandton, sandton) == pytest.approx(1.0)
    assert calculate_similarity(sandton, LocationProfile()) == 0.0


def test_market_activity(analytics, locations, add_listing, now):
    add_listing("sandton", created_at=now - 10 * DAY)
    add_listing("sandton", price=15_000, listing_type="rent", created_at=now - 45 * DAY - 3600)
    add_listing("sandton", status="sold")
    add_listing("rosebank")

    activity = analytics.market_activity("suburb", locations["sandton"], now=now)

    assert activity.total_listings == 2
    assert activity.for_sale_count == 1
    assert activity.to_rent_count == 1
    assert activity.new_listings == 1
    assert activity.avg_days_on_market == 28  # (10 + 46) / 2

    assert analytics.market_activity("city", locations["johannesburg"], now=now).total_listings == 3
    empty = analytics.market_activity("suburb", locations["sea_point"], now=now)
    assert empty.total_listings == 0
    assert empty.avg_days_on_market is None

    with pytest.raises(ValueError):
        analytics.market_activity("country", 1)
    with pytest.raises(RecordNotFound):
        analytics.market_activity("suburb", 9999)


def test_trending_suburbs(analytics, locations, add_listing, now):
    add_listing("sandton", price=2_000_000)
    add_listing("sandton", price=4_000_000)
    add_listing("sandton", price=15_000, listing_type="rent")
    for _ in range(3):
        analytics.record_search(locations["rosebank"], now=now - DAY)
    for age in (2, 10, 18):
        analytics.record_search(locations["sandton"], user_id=7, now=now - age * DAY)
    analytics.record_search(locations["sea_point"], now=now - 40 * DAY)

    trending = analytics.trending_suburbs(now=now)

    assert [s["name"] for s in trending] == ["Rosebank", "Sandton"]
    rosebank, sandton = trending
    assert rosebank["trending_score"] == 12
    assert rosebank["city"] == "Johannesburg"
    assert rosebank["province"] == "Gauteng"
    assert rosebank["avg_price"] is None
    assert sandton["trending_score"] == 7
    assert sandton["search_count"] == 3
    assert sandton["listing_count"] == 3
    assert sandton["avg_price"] == 3_000_000

    assert analytics.trending_score(locations["sandton"], now=now) == 7
    assert [s["name"] for s in analytics.trending_suburbs(limit=1, now=now)] == ["Rosebank"]
    assert analytics.trending_suburbs(now=now + 60 * DAY) == []
    with pytest.raises(RecordNotFound):
        analytics.record_search(9999)


def test_similar_locations(db, analytics, locations, add_listing):
    fourways = db.save_suburb(locations["johannesburg"], "Fourways")
    db.save_suburb(locations["johannesburg"], "Melville")
    add_listing("sandton", price=2_000_000)
    add_listing("sandton", price=2_000_000)
    add_listing("rosebank", price=2_500_000)
    add_listing("rosebank", price=2_500_000)
    add_listing("sea_point", price=1_000_000)
    add_listing("sea_point", price=3_000_000)
    add_listing("sandton", price=12_000, property_type="apartment", listing_type="rent", suburb_id=fourways)

    similar = analytics.similar_locations(locations["sandton"])

    assert [s["name"] for s in similar] == ["Rosebank", "Sea Point"]
    assert similar[0]["same_city"] is True
    assert similar[0]["similarity_score"] == 0.92
    assert similar[1]["similarity_score"] == 1.0
    assert similar[1]["property_types"] == ["house"]
    assert similar[1]["avg_price"] == 2_000_000

    assert [s["name"] for s in analytics.similar_locations(locations["sandton"], limit=1)] == ["Rosebank"]
    with pytest.raises(RecordNotFound):
        analytics.similar_locations(9999)
    with pytest.raises(ValueError):
        analytics.similar_locations(locations["sandton"], limit=0)
