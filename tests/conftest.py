import pytest

from marketplace.database import Database, ExploreContent

NOW = 1_760_000_000  # fixed clock for deterministic tests
DAY = 86400


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    database.create_tables()
    return database


@pytest.fixture
def locations(db):
    """Gauteng > Johannesburg > (Sandton, Rosebank) and Western Cape > Cape Town > Sea Point."""
    gauteng = db.save_province("Gauteng")
    western_cape = db.save_province("Western Cape")
    joburg = db.save_city(gauteng, "Johannesburg")
    cape_town = db.save_city(western_cape, "Cape Town")
    return {
        "gauteng": gauteng,
        "western_cape": western_cape,
        "johannesburg": joburg,
        "cape_town": cape_town,
        "sandton": db.save_suburb(joburg, "Sandton"),
        "rosebank": db.save_suburb(joburg, "Rosebank"),
        "sea_point": db.save_suburb(cape_town, "Sea Point"),
    }


@pytest.fixture
def add_listing(db, locations):
    """Factory for listings in a named suburb."""
    suburbs = {
        "sandton": ("gauteng", "johannesburg", "Gauteng", "Johannesburg", -26.1076, 28.0567),
        "rosebank": ("gauteng", "johannesburg", "Gauteng", "Johannesburg", -26.1453, 28.0436),
        "sea_point": ("western_cape", "cape_town", "Western Cape", "Cape Town", -33.9160, 18.3890),
    }

    def _add(suburb="sandton", price=1_000_000, **overrides):
        province_key, city_key, province, city, lat, lng = suburbs[suburb]
        fields = dict(
            title=f"Listing in {suburb}",
            property_type="house",
            listing_type="sale",
            price=price,
            bedrooms=3,
            bathrooms=2,
            area=200,
            address=f"1 Main Road, {suburb.replace('_', ' ').title()}",
            city=city,
            province=province,
            province_id=locations[province_key],
            city_id=locations[city_key],
            suburb_id=locations[suburb],
            latitude=lat,
            longitude=lng,
            status="available",
            created_at=NOW,
        )
        fields.update(overrides)
        return db.save_property(**fields)

    return _add


@pytest.fixture
def add_content(db):
    """Factory for active Explore content."""

    def _add(content_type="property_tour", **overrides):
        fields = dict(
            content_type=content_type,
            title=f"{content_type} video",
            description="",
            tags=[],
            is_active=True,
            is_featured=False,
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        with db.get_session() as session:
            content = ExploreContent(**fields)
            session.add(content)
            session.commit()
            return content.id

    return _add


@pytest.fixture
def now():
    return NOW
