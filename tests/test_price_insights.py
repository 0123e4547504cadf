import pytest

from analysis.price_insights import PriceInsights, price_buckets, segment_shares, summarize_prices
from marketplace.database import RecordNotFound
from marketplace.search import Bounds


@pytest.fixture
def insights(db):
    return PriceInsights(db)


def test_summarize_prices():
    stats = summarize_prices([1_000_000, 2_000_000, 3_000_000, 4_000_000])
    assert stats["count"] == 4
    assert stats["average"] == 2_500_000
    assert stats["median"] == 2_500_000
    assert stats["minimum"] == 1_000_000
    assert stats["maximum"] == 4_000_000
    assert stats["p25"] == 1_750_000
    assert stats["p75"] == 3_250_000

    assert summarize_prices([])["median"] == 0


def test_price_buckets_half_open():
    buckets = price_buckets([999_999, 1_000_000, 12_000_000])
    counts = {b["label"]: b["count"] for b in buckets}
    assert counts["Below R1M"] == 1
    assert counts["R1M - R2M"] == 1
    assert counts["Above R10M"] == 1


def test_segment_shares():
    shares = segment_shares([1_000_000, 2_000_000, 3_000_000, 6_000_000])
    assert shares == {"affordable_percent": 25, "mid_range_percent": 50, "luxury_percent": 25}
    assert segment_shares([])["luxury_percent"] == 0


def test_location_stats_by_city(insights, add_listing):
    add_listing("sandton", price=1_000_000)
    add_listing("rosebank", price=3_000_000, property_type="apartment")
    add_listing("rosebank", price=2_000_000, property_type="apartment")
    add_listing("sea_point", price=9_000_000)
    add_listing("sandton", price=50_000_000, status="sold")

    stats = insights.location_stats("city", "Johannesburg")

    assert stats.total == 3
    assert stats.median == 2_000_000
    assert stats.average == 2_000_000
    assert stats.maximum == 3_000_000
    assert stats.property_types[0] == {"type": "apartment", "count": 2, "percentage": 67}
    assert stats.listing_types == [{"type": "sale", "count": 3, "percentage": 100}]


def test_location_stats_filters_and_empty(insights, add_listing):
    add_listing("sea_point", price=4_000_000, listing_type="rent")
    add_listing("sea_point", price=6_000_000)

    stats = insights.location_stats("suburb", "sea-point", listing_type="sale")
    assert stats.total == 1
    assert stats.median == 6_000_000

    empty = insights.location_stats("province", "Limpopo")
    assert empty.total == 0
    assert empty.property_types == []

    with pytest.raises(ValueError):
        insights.location_stats("country", "South Africa")


def test_province_lookup_matches_whole_name(db, insights, add_listing):
    db.save_province("Northern Cape")
    add_listing("sea_point", price=3_000_000)
    add_listing("sandton", price=2_000_000)

    assert insights.location_stats("province", "Cape").total == 0
    assert insights.location_stats("province", "western cape").total == 1
    assert insights.location_stats("province", "western-cape").median == 3_000_000
    assert insights.location_stats("province", "Northern Cape").total == 0


def test_national_hierarchy(insights, locations, add_listing):
    add_listing("sandton", price=1_000_000)
    add_listing("rosebank", price=3_000_000)
    add_listing("sea_point", price=8_000_000)

    result = insights.hierarchy("national")

    assert result["parent"] is None
    assert [tab["name"] for tab in result["tabs"]] == ["Gauteng", "Western Cape"]
    assert result["summary"]["listing_count"] == 3
    gauteng = result["children"][0]
    assert gauteng["listing_count"] == 2
    assert gauteng["median_price"] == 2_000_000
    buckets = {b["label"]: b["count"] for b in result["price_buckets"]}
    assert buckets["R2M - R3M"] == 1
    assert buckets["R5M - R10M"] == 1


def test_city_hierarchy_lists_empty_suburbs(insights, locations, add_listing):
    add_listing("sandton", price=2_000_000)

    result = insights.hierarchy("city", locations["johannesburg"])

    assert result["parent"] == {"id": locations["johannesburg"], "name": "Johannesburg"}
    by_name = {c["name"]: c for c in result["children"]}
    assert by_name["Rosebank"]["listing_count"] == 0
    assert by_name["Sandton"]["median_price"] == 2_000_000


def test_hierarchy_validation(insights, locations):
    with pytest.raises(ValueError):
        insights.hierarchy("province")
    with pytest.raises(ValueError):
        insights.hierarchy("suburb", 1)
    with pytest.raises(RecordNotFound):
        insights.hierarchy("province", 9999)


def test_heatmap_counts_each_listing_once(insights, add_listing):
    bounds = Bounds(north=-26.0, south=-26.2, east=28.1, west=28.0)
    add_listing("sandton", latitude=-26.05, longitude=28.05)
    add_listing("sandton", latitude=-26.05, longitude=28.05)
    add_listing("sandton", latitude=-26.0, longitude=28.1)
    add_listing("sea_point")

    cells = insights.heatmap(bounds, grid_size=10)

    assert sum(cell.count for cell in cells) == 3
    densest = max(cells, key=lambda cell: cell.count)
    assert densest.count == 2
    assert densest.weight == pytest.approx(0.2)
    assert densest.intensity == pytest.approx(0.4)
    assert bounds.south <= densest.latitude <= bounds.north


def test_heatmap_validation(insights):
    bounds = Bounds(north=-26.0, south=-26.2, east=28.1, west=28.0)
    with pytest.raises(ValueError):
        insights.heatmap(bounds, grid_size=4)
    with pytest.raises(ValueError):
        insights.heatmap(Bounds(north=-26.2, south=-26.0, east=28.1, west=28.0))
    assert insights.heatmap(bounds) == []


def test_refresh_price_analytics(insights, locations, add_listing):
    add_listing("sandton", price=1_000_000)
    add_listing("sandton", price=6_000_000)

    written = insights.refresh_price_analytics()

    assert written == 7
    sandton = insights.get_price_analytics("suburb", locations["sandton"])
    assert sandton.price_count == 2
    assert sandton.median_price == 3_500_000
    assert sandton.affordable_percent == 50
    assert sandton.luxury_percent == 50
    assert insights.get_price_analytics("suburb", locations["rosebank"]).price_count == 0

    add_listing("sandton", price=2_000_000)
    assert insights.refresh_price_analytics() == 7
    assert insights.get_price_analytics("suburb", locations["sandton"]).price_count == 3
