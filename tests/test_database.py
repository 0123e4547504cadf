import pytest

from marketplace.database import Database, RecordNotFound


def test_bare_path_becomes_sqlite_url(tmp_path):
    database = Database(str(tmp_path / "x.db"))
    assert database.url.startswith("sqlite:///")


def test_location_upsert_by_slug(db):
    first = db.save_province("Gauteng")
    second = db.save_province("Gauteng")
    assert first == second
    assert len(db.get_provinces()) == 1

    city = db.save_city(first, "Johannesburg")
    assert db.get_city_by_slug("Johannesburg").id == city
    assert db.get_city_by_slug("johannesburg").id == city
    assert [c.name for c in db.get_cities(first)] == ["Johannesburg"]


def test_suburbs_filtered_by_city(db, locations):
    names = [s.name for s in db.get_suburbs(locations["johannesburg"])]
    assert names == ["Rosebank", "Sandton"]
    assert len(db.get_suburbs()) == 3


def test_save_property_requires_fields(db):
    with pytest.raises(ValueError):
        db.save_property(title="No price", property_type="house", listing_type="sale")
    with pytest.raises(ValueError):
        db.save_property(title="Negative", property_type="house", listing_type="sale", price=-1)
    with pytest.raises(ValueError):
        db.save_property(title="Castle", property_type="castle", listing_type="sale", price=1)
    with pytest.raises(ValueError):
        db.save_property(title="Swap", property_type="house", listing_type="swap", price=1)
    with pytest.raises(ValueError):
        db.save_property(title="Gone", property_type="house", listing_type="sale", price=1, status="lost")


def test_save_and_get_property(db, add_listing):
    property_id = add_listing(price=2_500_000)
    listing = db.get_property(property_id)
    assert listing.price == 2_500_000
    assert listing.status == "available"
    assert listing.updated_at == listing.created_at


def test_update_property_status(db, add_listing):
    property_id = add_listing()
    db.update_property_status(property_id, "sold")
    assert db.get_property(property_id).status == "sold"

    with pytest.raises(ValueError):
        db.update_property_status(property_id, "vanished")
    with pytest.raises(RecordNotFound):
        db.update_property_status(9999, "sold")


def test_images_primary_first(db, add_listing):
    property_id = add_listing()
    db.add_property_image(property_id, "b.jpg", display_order=2)
    db.add_property_image(property_id, "a.jpg", display_order=1)
    db.add_property_image(property_id, "main.jpg", is_primary=True, display_order=5)

    images = db.get_images_for_properties([property_id])
    assert images[property_id] == ["main.jpg", "a.jpg", "b.jpg"]
    assert db.get_images_for_properties([]) == {}


def test_agent_directory(db):
    agency_id = db.save_agency("Coastal Realty", city="Cape Town")
    agent_id = db.save_agent("Thandi Mokoena", agency_id=agency_id, email="thandi@example.co.za")

    directory = db.get_agent_directory([agent_id, None])
    assert directory[agent_id]["name"] == "Thandi Mokoena"
    assert directory[agent_id]["agency"] == "Coastal Realty"
    assert db.save_agency("Coastal Realty") == agency_id
