"""
Demo data for local development and the CLI.

Reference data (locations, plans, launch quotas) is upserted so seeding twice
is harmless. Listings and Explore content are random but reproducible for a
given rng_seed.
"""

import logging
import random
from typing import Dict, List, Optional

from config.settings import DAY, DEFAULT_LAUNCH_QUOTAS
from marketplace.database import Agent, Database, ExploreContent
from marketplace.launch import LaunchTracker
from marketplace.partners import PartnerService
from marketplace.quality import ContentMetadata, QualityScorer
from marketplace.subscriptions import SubscriptionService
from marketplace.utils import now_ts, slugify

logger = logging.getLogger(__name__)

# province -> city -> [(suburb, lat, lng)]
SEED_LOCATIONS = {
    "Gauteng": {
        "Johannesburg": [
            ("Sandton", -26.1076, 28.0567),
            ("Rosebank", -26.1453, 28.0436),
            ("Fourways", -26.0167, 28.0089),
            ("Melville", -26.1753, 28.0086),
        ],
        "Pretoria": [
            ("Hatfield", -25.7487, 28.2380),
            ("Menlo Park", -25.7700, 28.2600),
            ("Centurion", -25.8603, 28.1894),
        ],
    },
    "Western Cape": {
        "Cape Town": [
            ("Sea Point", -33.9160, 18.3890),
            ("Claremont", -33.9810, 18.4650),
            ("Durbanville", -33.8320, 18.6470),
            ("Woodstock", -33.9270, 18.4480),
        ],
        "Stellenbosch": [
            ("Die Boord", -33.9480, 18.8440),
            ("Paradyskloof", -33.9610, 18.8720),
        ],
    },
    "KwaZulu-Natal": {
        "Durban": [
            ("Umhlanga", -29.7260, 31.0850),
            ("Morningside", -29.8290, 31.0100),
            ("Ballito", -29.5390, 31.2140),
        ],
    },
}

# Rough asking price ranges (rands) per property type
PRICE_RANGES = {
    "apartment": (650_000, 4_500_000),
    "house": (1_200_000, 12_000_000),
    "townhouse": (950_000, 4_000_000),
    "cluster_home": (1_100_000, 5_500_000),
    "villa": (4_500_000, 25_000_000),
    "plot": (350_000, 3_500_000),
}

AGENCIES = {
    "Coastal Realty": ["Thandi Mokoena", "Pieter van Wyk"],
    "Highveld Homes": ["Sipho Dlamini", "Anika Naidoo"],
    "Metro Property Group": ["Lerato Khumalo"],
}

CONTENT_TYPES = tuple(DEFAULT_LAUNCH_QUOTAS)
CONTENT_TAGS = ("family", "luxury", "investment", "first-home", "security", "schools", "beach", "pet-friendly")

SUBSCRIPTION_PLANS: List[Dict] = [
    {
        "plan_id": "agent_trial",
        "display_name": "Agent Pro Trial",
        "category": "agent",
        "price_zar": 0,
        "is_trial_plan": True,
        "trial_days": 14,
        "upgrade_to_plan_id": "agent_pro",
        "downgrade_to_plan_id": "agent_free",
        "features": ["Unlimited listings for 14 days", "Explore boosts", "Lead CRM"],
        "limits": {"listings": -1, "boosts": 3, "crm_contacts": 500},
        "permissions": {"analytics": True, "crm": True, "boost_credits": 3, "explore_upload": True},
        "sort_order": 0,
    },
    {
        "plan_id": "agent_free",
        "display_name": "Agent Free",
        "category": "agent",
        "price_zar": 0,
        "is_free_plan": True,
        "upgrade_to_plan_id": "agent_pro",
        "features": ["5 active listings"],
        "limits": {"listings": 5, "boosts": 0, "crm_contacts": 50},
        "permissions": {"analytics": False, "crm": False, "boost_credits": 0, "explore_upload": False},
        "sort_order": 1,
    },
    {
        "plan_id": "agent_pro",
        "display_name": "Agent Pro",
        "category": "agent",
        "price_zar": 49_900,
        "upgrade_to_plan_id": "agent_elite",
        "downgrade_to_plan_id": "agent_free",
        "features": ["50 active listings", "Listing analytics", "Lead CRM"],
        "limits": {"listings": 50, "boosts": 5, "crm_contacts": 1000},
        "permissions": {"analytics": True, "crm": True, "boost_credits": 5, "explore_upload": True},
        "sort_order": 2,
    },
    {
        "plan_id": "agent_elite",
        "display_name": "Agent Elite",
        "category": "agent",
        "price_zar": 99_900,
        "downgrade_to_plan_id": "agent_pro",
        "features": ["Unlimited listings", "Priority Explore placement", "Market reports"],
        "limits": {"listings": -1, "boosts": 20, "crm_contacts": -1},
        "permissions": {"analytics": True, "crm": True, "boost_credits": 20, "explore_upload": True},
        "sort_order": 3,
    },
    {
        "plan_id": "agency_trial",
        "display_name": "Agency Growth Trial",
        "category": "agency",
        "price_zar": 0,
        "is_trial_plan": True,
        "trial_days": 14,
        "upgrade_to_plan_id": "agency_growth",
        "downgrade_to_plan_id": "agency_starter",
        "features": ["Up to 10 agents", "Team analytics"],
        "limits": {"listings": -1, "agents": 10, "boosts": 5},
        "permissions": {"analytics": True, "crm": True, "team_management": True, "boost_credits": 5},
        "sort_order": 0,
    },
    {
        "plan_id": "agency_starter",
        "display_name": "Agency Starter",
        "category": "agency",
        "price_zar": 149_900,
        "upgrade_to_plan_id": "agency_growth",
        "features": ["Up to 3 agents"],
        "limits": {"listings": 100, "agents": 3, "boosts": 2},
        "permissions": {"analytics": False, "crm": True, "team_management": False, "boost_credits": 2},
        "sort_order": 1,
    },
    {
        "plan_id": "agency_growth",
        "display_name": "Agency Growth",
        "category": "agency",
        "price_zar": 349_900,
        "downgrade_to_plan_id": "agency_starter",
        "features": ["Up to 10 agents", "Team analytics", "Branded Explore channel"],
        "limits": {"listings": -1, "agents": 10, "boosts": 10},
        "permissions": {"analytics": True, "crm": True, "team_management": True, "boost_credits": 10},
        "sort_order": 2,
    },
    {
        "plan_id": "developer_trial",
        "display_name": "Developer Showcase Trial",
        "category": "developer",
        "price_zar": 0,
        "is_trial_plan": True,
        "trial_days": 30,
        "upgrade_to_plan_id": "developer_showcase",
        "downgrade_to_plan_id": "developer_basic",
        "features": ["3 developments", "Unit match"],
        "limits": {"projects": 3, "boosts": 5},
        "permissions": {"analytics": True, "unit_match": True, "boost_credits": 5},
        "sort_order": 0,
    },
    {
        "plan_id": "developer_basic",
        "display_name": "Developer Basic",
        "category": "developer",
        "price_zar": 199_900,
        "upgrade_to_plan_id": "developer_showcase",
        "features": ["1 development"],
        "limits": {"projects": 1, "boosts": 0},
        "permissions": {"analytics": False, "unit_match": False, "boost_credits": 0},
        "sort_order": 1,
    },
    {
        "plan_id": "developer_showcase",
        "display_name": "Developer Showcase",
        "category": "developer",
        "price_zar": 599_900,
        "downgrade_to_plan_id": "developer_basic",
        "features": ["Unlimited developments", "Unit match", "Explore showcase videos"],
        "limits": {"projects": -1, "boosts": 15},
        "permissions": {"analytics": True, "unit_match": True, "boost_credits": 15},
        "sort_order": 2,
    },
]

SEED_PARTNERS = (
    ("seed-partner-1", "Cape Coast Media"),
    ("seed-partner-2", "Jozi Home Tours"),
    ("seed-partner-3", "Durban Lifestyle Co"),
)


def seed_locations(database: Database) -> Dict[str, int]:
    """Upsert provinces, cities and suburbs. Returns counts per level."""
    counts = {"provinces": 0, "cities": 0, "suburbs": 0}
    for province_name, cities in SEED_LOCATIONS.items():
        province_id = database.save_province(province_name)
        counts["provinces"] += 1
        for city_name, suburbs in cities.items():
            city_id = database.save_city(province_id, city_name)
            counts["cities"] += 1
            for suburb_name, _, _ in suburbs:
                database.save_suburb(city_id, suburb_name, slug=f"{slugify(city_name)}-{slugify(suburb_name)}")
                counts["suburbs"] += 1
    logger.info(f"Seeded locations: {counts}")
    return counts


def _ensure_agents(database: Database) -> List[int]:
    agent_ids = []
    for agency_name, agents in AGENCIES.items():
        agency_id = database.save_agency(agency_name)
        for name in agents:
            with database.get_session() as session:
                existing = session.query(Agent).filter_by(name=name, agency_id=agency_id).first()
            if existing:
                agent_ids.append(existing.id)
            else:
                email = f"{slugify(name).replace('-', '.')}@{slugify(agency_name)}.co.za"
                agent_ids.append(database.save_agent(name, agency_id=agency_id, email=email))
    return agent_ids


def seed_listings(database: Database, count: int = 200, rng_seed: int = 42, now: Optional[int] = None) -> int:
    """
    Create random listings spread over the seeded suburbs.

    Args:
        database: Target database
        count: Number of listings
        rng_seed: Seed for reproducible data
        now: Unix time the listing dates count back from

    Returns:
        Number of listings created
    """
    if count < 0:
        raise ValueError("count cannot be negative")
    seed_locations(database)
    agent_ids = _ensure_agents(database)
    rng = random.Random(rng_seed)
    now = now if now is not None else now_ts()

    places = []
    for province_name, cities in SEED_LOCATIONS.items():
        province = database.get_province_by_slug(province_name)
        for city_name, suburbs in cities.items():
            city = database.get_city_by_slug(city_name)
            for suburb_name, lat, lng in suburbs:
                suburb = database.get_suburb_by_slug(f"{slugify(city_name)}-{slugify(suburb_name)}")
                places.append((province, city, suburb, lat, lng))

    for _ in range(count):
        province, city, suburb, lat, lng = rng.choice(places)
        property_type = rng.choice(list(PRICE_RANGES))
        low, high = PRICE_RANGES[property_type]
        listing_type = "rent" if rng.random() < 0.15 else "sale"
        price = int(round(rng.uniform(low, high), -4))
        if listing_type == "rent":
            price = int(round(price / 200, -2))
        bedrooms = 0 if property_type == "plot" else rng.randint(1, 5)
        status = rng.choices(("available", "published", "sold", "rented", "pending"), weights=(55, 25, 10, 5, 5))[0]

        property_id = database.save_property(
            title=f"{bedrooms} Bedroom {property_type.replace('_', ' ').title()} in {suburb.name}"
            if bedrooms
            else f"Vacant Land in {suburb.name}",
            description=f"Well located {property_type.replace('_', ' ')} in {suburb.name}, {city.name}.",
            property_type=property_type,
            listing_type=listing_type,
            price=price,
            bedrooms=bedrooms,
            bathrooms=max(1, bedrooms - rng.randint(0, 1)) if bedrooms else 0,
            area=rng.randint(40, 600),
            address=f"{rng.randint(1, 250)} Main Road, {suburb.name}",
            city=city.name,
            province=province.name,
            province_id=province.id,
            city_id=city.id,
            suburb_id=suburb.id,
            latitude=lat + rng.uniform(-0.01, 0.01),
            longitude=lng + rng.uniform(-0.01, 0.01),
            status=status,
            agent_id=rng.choice(agent_ids),
            levies=rng.randint(800, 4500) if property_type in ("apartment", "townhouse", "cluster_home") else None,
            rates_and_taxes=rng.randint(600, 3500),
            created_at=now - rng.randint(0, 120) * DAY,
        )
        image_count = rng.randint(1, 4)
        for order in range(image_count):
            database.add_property_image(
                property_id,
                f"https://images.example.co.za/listings/{property_id}/{order}.jpg",
                is_primary=order == 0,
                display_order=order,
            )

    logger.info(f"Seeded {count} listings")
    return count


def seed_subscription_plans(database: Database) -> int:
    """Upsert the standard agent, agency and developer plans."""
    service = SubscriptionService(database)
    for plan in SUBSCRIPTION_PLANS:
        fields = {key: value for key, value in plan.items() if key != "plan_id"}
        fields.setdefault("is_trial_plan", False)
        fields.setdefault("is_free_plan", False)
        fields.setdefault("trial_days", 0)
        fields.setdefault("is_active", True)
        service.save_plan(plan["plan_id"], **fields)
    logger.info(f"Seeded {len(SUBSCRIPTION_PLANS)} subscription plans")
    return len(SUBSCRIPTION_PLANS)


def seed_explore_content(
    database: Database,
    count: int = 60,
    rng_seed: int = 42,
    now: Optional[int] = None,
) -> int:
    """
    Create partners and approved Explore content with initial quality scores.

    Returns:
        Number of content items created
    """
    if count < 0:
        raise ValueError("count cannot be negative")
    rng = random.Random(rng_seed)
    now = now if now is not None else now_ts()

    tracker = LaunchTracker(database)
    tracker.seed_default_quotas()
    partners = PartnerService(database, launch_tracker=tracker)
    scorer = QualityScorer(database)

    partner_ids = []
    for user_id, company in SEED_PARTNERS:
        existing = partners.get_partner_by_user(user_id)
        partner_ids.append(existing.id if existing else partners.register_partner(company, user_id))
    partners.verify_partner(partner_ids[0])

    suburbs = [(name, lat, lng) for cities in SEED_LOCATIONS.values() for subs in cities.values() for name, lat, lng in subs]

    for _ in range(count):
        content_type = rng.choice(CONTENT_TYPES)
        suburb, lat, lng = rng.choice(suburbs)
        tags = rng.sample(CONTENT_TAGS, rng.randint(0, 5))
        title = f"{content_type.replace('_', ' ').title()}: {suburb}"
        description = f"A look at {suburb}. " * rng.randint(1, 8)

        with database.get_session() as session:
            content = ExploreContent(
                content_type=content_type,
                title=title,
                description=description.strip(),
                tags=tags,
                category=rng.choice(("lifestyle", "investment", "new_developments", None)),
                thumbnail_url=f"https://cdn.example.co.za/explore/{rng.randint(1000, 9999)}.jpg"
                if rng.random() < 0.8
                else None,
                video_url=f"https://cdn.example.co.za/explore/{rng.randint(1000, 9999)}.mp4",
                location_lat=lat,
                location_lng=lng,
                partner_id=rng.choice(partner_ids),
                view_count=rng.randint(0, 5000),
                is_active=False,
                is_featured=rng.random() < 0.1,
                created_at=now - rng.randint(0, 30) * DAY,
                updated_at=now,
            )
            session.add(content)
            session.commit()

        scorer.calculate_initial_score(
            content.id,
            ContentMetadata(
                title=content.title,
                description=content.description,
                tags=tags,
                location=suburb,
                thumbnail_url=content.thumbnail_url,
                category=content.category,
            ),
        )
        partners.approve_content(content.id)

    for partner_id in partner_ids:
        partners.calculate_trust_score(partner_id)

    logger.info(f"Seeded {count} explore content items")
    return count


def seed_all(database: Database, listings: int = 200, content: int = 60, rng_seed: int = 42) -> Dict[str, int]:
    """Seed every kind of demo data."""
    locations = seed_locations(database)
    return {
        **locations,
        "listings": seed_listings(database, listings, rng_seed),
        "plans": seed_subscription_plans(database),
        "content": seed_explore_content(database, content, rng_seed),
    }
