"""
Configuration constants and settings for the property marketplace.

Centralizes all configuration including:
- Database location
- Feed ranking and boost parameters
- Launch phases, content quotas and metric targets
- South African lending constants
- Price insight buckets and segments
- Partner moderation and the founding partner programme
- Location trends and similarity
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ═══ Database ═══
DATABASE_PATH = os.getenv("DATABASE_PATH", "marketplace.db")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")

# ═══ Constants ═══
DAY = 86400
EARTH_RADIUS_KM = 6371.0

# Listing statuses that are visible to the public
ACTIVE_STATUSES = ("available", "published")

PROPERTY_TYPES = (
    "apartment",
    "house",
    "villa",
    "plot",
    "commercial",
    "townhouse",
    "cluster_home",
    "farm",
    "shared_living",
)
LISTING_TYPES = ("sale", "rent", "rent_to_buy", "auction", "shared_living")
PROPERTY_STATUSES = ("available", "sold", "rented", "pending", "draft", "published", "archived")

# ═══ Feed Ranking ═══
RANKING_WEIGHTS = {
    "user_interest": 0.35,
    "content_quality": 0.25,
    "local_relevance": 0.20,
    "recency": 0.10,
    "partner_trust": 0.10,
}
NEUTRAL_SCORE = 50.0
RECENCY_HALF_LIFE_DAYS = 7

# (max distance km, score); anything further scores FAR_DISTANCE_SCORE
LOCAL_RELEVANCE_BANDS = ((5, 100), (20, 80), (50, 60), (100, 40))
FAR_DISTANCE_SCORE = 20

BOOST_MULTIPLIER_MIN = 1.2
BOOST_MULTIPLIER_MAX = 2.0
BOOST_BUDGET_REFERENCE = 1000.0  # budget (rands) that earns the full multiplier
BOOST_RATIO_LIMIT = 0.1  # 1 boosted per 10 organic
DEFAULT_COST_PER_IMPRESSION = 0.10

# ═══ Content Quality ═══
QUALITY_WEIGHTS = {
    "metadata": 0.20,
    "engagement": 0.40,
    "production": 0.25,
    "negative_signals": 0.15,
}
LOW_QUALITY_THRESHOLD = 40.0
UNDERPERFORMANCE_THRESHOLD = 35.0
NEGATIVE_SIGNAL_WEIGHTS = {"quick_skip": 1, "report": 5}

# ═══ Launch ═══
LAUNCH_PHASES = {
    "pre_launch": {"primary_content_ratio": 0.80, "algorithm_weight": 0.0, "editorial_weight": 1.0},
    "launch_period": {"primary_content_ratio": 0.80, "algorithm_weight": 0.0, "editorial_weight": 1.0},
    "ramp_up": {"primary_content_ratio": 0.70, "algorithm_weight": 0.50, "editorial_weight": 0.50},
    "ecosystem_maturity": {"primary_content_ratio": 0.70, "algorithm_weight": 1.0, "editorial_weight": 0.0},
}
DEFAULT_LAUNCH_QUOTAS = {
    "property_tour": 60,
    "neighbourhood_guide": 40,
    "expert_tip": 40,
    "development_showcase": 30,
    "market_insight": 30,
}
MIN_LAUNCH_CONTENT = 200
LAUNCH_METRIC_TARGETS = {
    "topic_engagement_rate": 60.0,
    "partner_content_watch_rate": 40.0,
    "save_share_rate": 30.0,
    "weekly_visits_per_user": 3.0,
}
UNDERPERFORMANCE_FACTOR = 0.8
RECOVERY_WEIGHT_STEP = 0.2

# Content that counts as "primary" in the Explore feed mix
PRIMARY_CONTENT_TYPES = ("property_tour", "development_showcase")

# ═══ South African Lending (amounts in cents) ═══
PRIME_RATE = float(os.getenv("PRIME_RATE", "11.75"))
BOND_TERM_MONTHS = 240
HOUSING_AFFORDABILITY_RATIO = 0.35
BOND_REGISTRATION_COST = 0.015
LEGAL_FEES_ESTIMATE = 0.01
TRANSFER_DUTY_BRACKETS = (
    (100_000_000, 0.0),
    (150_000_000, 0.005),
    (200_000_000, 0.01),
    (250_000_000, 0.015),
    (1_000_000_000, 0.02),
    (float("inf"), 0.025),
)
MONTHLY_LIVING_EXPENSES = {
    "single": 800_000,
    "couple": 1_200_000,
    "family": 1_500_000,
}
INCOME_RANGE_MIDPOINTS = {
    "under_15k": 1_200_000,
    "15k_25k": 2_000_000,
    "25k_50k": 3_750_000,
    "50k_100k": 7_500_000,
    "over_100k": 15_000_000,
}

# ═══ Price Insights (listing prices are whole rands) ═══
PRICE_BUCKETS = (
    ("Below R1M", 0, 1_000_000),
    ("R1M - R2M", 1_000_000, 2_000_000),
    ("R2M - R3M", 2_000_000, 3_000_000),
    ("R3M - R5M", 3_000_000, 5_000_000),
    ("R5M - R10M", 5_000_000, 10_000_000),
    ("Above R10M", 10_000_000, float("inf")),
)
AFFORDABLE_CEILING = 1_500_000
LUXURY_FLOOR = 5_000_000
SIMILAR_PRICE_BAND = 0.3

# ═══ Partners ═══
AUTO_APPROVAL_THRESHOLD = 3  # approved items before new submissions skip the manual queue
PARTNER_TIERS = {
    1: {
        "name": "Property Professional",
        "allowed_content_types": ("property_tour", "neighbourhood_guide", "market_insight"),
        "allowed_ctas": ("view_listing", "book_viewing", "contact_agent"),
    },
    2: {
        "name": "Home Service Provider",
        "allowed_content_types": ("expert_tip", "neighbourhood_guide"),
        "allowed_ctas": ("request_quote", "learn_more"),
    },
    3: {
        "name": "Financial Partner",
        "allowed_content_types": ("expert_tip", "market_insight"),
        "allowed_ctas": ("pre_qualify", "learn_more"),
    },
    4: {
        "name": "Content Educator",
        "allowed_content_types": ("expert_tip", "neighbourhood_guide", "market_insight"),
        "allowed_ctas": ("learn_more",),
    },
    5: {
        "name": "Developer",
        "allowed_content_types": ("development_showcase", "property_tour"),
        "allowed_ctas": ("view_listing", "book_viewing", "download_brochure"),
    },
}
PROMOTIONAL_KEYWORDS = (
    "buy now",
    "limited time",
    "act fast",
    "don't miss",
    "exclusive offer",
    "special deal",
    "hurry",
)

MAX_FOUNDING_PARTNERS = 15
FOUNDING_PRE_LAUNCH_COMMITMENT = 5
FOUNDING_WEEKLY_COMMITMENT = 2
FOUNDING_BENEFIT_DAYS = 90
FOUNDING_MAX_WARNINGS = 2

# ═══ Location Analytics ═══
TRENDING_WINDOW_DAYS = 30
# (max age in days, weight) for searches inside the window
TRENDING_SEARCH_WEIGHTS = ((7, 4.0), (14, 2.0), (21, 1.0), (30, 0.5))
NEW_LISTING_WINDOW_DAYS = 30
SIMILARITY_WEIGHTS = {"price": 0.4, "property_types": 0.3, "density": 0.3}
SIMILARITY_THRESHOLD = 0.5
