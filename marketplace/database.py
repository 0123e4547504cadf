"""
Database module for storing and querying marketplace data.
Uses SQLite (or any SQLAlchemy URL) with SQLAlchemy ORM.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config.settings import LISTING_TYPES, PROPERTY_STATUSES, PROPERTY_TYPES
from marketplace.utils import now_ts, slugify

logger = logging.getLogger(__name__)

Base = declarative_base()


class RecordNotFound(LookupError):
    """Raised when an operation needs a row that does not exist."""


# ═══ Locations ═══


class Province(Base):
    """Province (top of the location hierarchy)."""

    __tablename__ = "provinces"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Province(id={self.id}, name={self.name})>"


class City(Base):
    """City within a province."""

    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    province_id = Column(Integer, ForeignKey("provinces.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<City(id={self.id}, name={self.name})>"


class Suburb(Base):
    """Suburb within a city."""

    __tablename__ = "suburbs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(150), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Suburb(id={self.id}, name={self.name})>"


# ═══ Agencies ═══


class Agency(Base):
    __tablename__ = "agencies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    city = Column(String(100))
    created_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<Agency(id={self.id}, name={self.name})>"


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agency_id = Column(Integer, ForeignKey("agencies.id"), index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    created_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name={self.name})>"


# ═══ Listings ═══


class Property(Base):
    """A property listing. Prices are whole rands."""

    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    property_type = Column(String(30), nullable=False, index=True)
    listing_type = Column(String(30), nullable=False, index=True)
    price = Column(Integer, nullable=False, index=True)
    bedrooms = Column(Integer, index=True)
    bathrooms = Column(Integer)
    area = Column(Integer, default=0)  # m²
    address = Column(Text, default="")
    city = Column(String(100), default="", index=True)
    province = Column(String(100), default="", index=True)
    province_id = Column(Integer, ForeignKey("provinces.id"), index=True)
    city_id = Column(Integer, ForeignKey("cities.id"), index=True)
    suburb_id = Column(Integer, ForeignKey("suburbs.id"), index=True)
    latitude = Column(Float)
    longitude = Column(Float)
    status = Column(String(20), default="available", nullable=False, index=True)
    featured = Column(Boolean, default=False)
    views = Column(Integer, default=0)
    enquiries = Column(Integer, default=0)
    agent_id = Column(Integer, ForeignKey("agents.id"))
    levies = Column(Integer)
    rates_and_taxes = Column(Integer)
    main_image = Column(String(1024))
    created_at = Column(Integer, index=True)
    updated_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, price=R{self.price})>"


class PropertyImage(Base):
    __tablename__ = "property_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    image_url = Column(String(1024), nullable=False)
    is_primary = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)


class PriceAnalytics(Base):
    """Cached price statistics per location."""

    __tablename__ = "price_analytics"
    __table_args__ = (UniqueConstraint("location_type", "location_id", name="uq_price_analytics_location"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    location_type = Column(String(20), nullable=False)  # province, city, suburb
    location_id = Column(Integer, nullable=False)
    average_price = Column(Integer, default=0)
    median_price = Column(Integer, default=0)
    min_price = Column(Integer, default=0)
    max_price = Column(Integer, default=0)
    p25_price = Column(Integer, default=0)
    p75_price = Column(Integer, default=0)
    price_count = Column(Integer, default=0)
    affordable_percent = Column(Integer, default=0)
    mid_range_percent = Column(Integer, default=0)
    luxury_percent = Column(Integer, default=0)
    updated_at = Column(Integer)

    def __repr__(self) -> str:
        return (
            f"<PriceAnalytics({self.location_type}={self.location_id}, "
            f"median=R{self.median_price}, count={self.price_count})>"
        )


class LocationSearch(Base):
    """One search against a suburb. Feeds the trending score."""

    __tablename__ = "location_searches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    suburb_id = Column(Integer, ForeignKey("suburbs.id"), nullable=False, index=True)
    user_id = Column(Integer)
    searched_at = Column(Integer, nullable=False, index=True)


# ═══ Explore ═══


class ExplorePartner(Base):
    __tablename__ = "explore_partners"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False)
    tier_id = Column(Integer, default=1)
    company_name = Column(String(255), nullable=False)
    description = Column(Text)
    verification_status = Column(String(20), default="pending")  # pending, verified, rejected
    trust_score = Column(Float, default=50.0)
    approved_content_count = Column(Integer, default=0)
    created_at = Column(Integer)
    updated_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<ExplorePartner(id={self.id}, company={self.company_name}, trust={self.trust_score})>"


class ExploreContent(Base):
    """A short video or article in the Explore feed."""

    __tablename__ = "explore_content"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content_type = Column(String(50), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    tags = Column(JSON)
    category = Column(String(100))
    thumbnail_url = Column(String(500))
    video_url = Column(String(500))
    location_lat = Column(Float)
    location_lng = Column(Float)
    partner_id = Column(String(36), ForeignKey("explore_partners.id"), index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id"), index=True)
    view_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    approved_at = Column(Integer)
    created_at = Column(Integer)
    updated_at = Column(Integer)

    __table_args__ = (Index("idx_explore_content_active", "is_active", "created_at"),)

    def __repr__(self) -> str:
        return f"<ExploreContent(id={self.id}, type={self.content_type}, title={self.title!r})>"


class ContentQualityScore(Base):
    __tablename__ = "content_quality_scores"

    content_id = Column(String(36), primary_key=True)
    overall_score = Column(Float, default=50.0, index=True)
    metadata_score = Column(Float, default=0.0)
    engagement_score = Column(Float, default=0.0)
    production_score = Column(Float, default=0.0)
    negative_signals = Column(Integer, default=0)
    last_calculated_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<ContentQualityScore(content={self.content_id}, overall={self.overall_score:.1f})>"


class BoostCampaign(Base):
    """Paid promotion of one piece of Explore content. Money in rands."""

    __tablename__ = "boost_campaigns"

    id = Column(String(36), primary_key=True)
    partner_id = Column(String(36), ForeignKey("explore_partners.id"), nullable=False, index=True)
    content_id = Column(String(36), nullable=False, index=True)
    topic_id = Column(String(36), index=True)
    budget = Column(Float, nullable=False)
    spent = Column(Float, default=0.0)
    status = Column(String(20), default="draft")  # draft, active, paused, completed, depleted
    start_date = Column(Integer, nullable=False)
    end_date = Column(Integer)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    cost_per_impression = Column(Float, default=0.10)
    created_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<BoostCampaign(id={self.id}, status={self.status}, spent={self.spent}/{self.budget})>"


class ContentApproval(Base):
    """Moderation queue entry for a piece of partner content."""

    __tablename__ = "content_approval_queue"

    id = Column(String(36), primary_key=True)
    content_id = Column(Integer, ForeignKey("explore_content.id"), nullable=False, unique=True)
    partner_id = Column(String(36), ForeignKey("explore_partners.id"), nullable=False, index=True)
    status = Column(String(20), default="pending", index=True)  # pending, approved, rejected, revision_requested
    submitted_at = Column(Integer)
    reviewed_at = Column(Integer)
    reviewer_id = Column(String(36))
    feedback = Column(Text)
    auto_approval_eligible = Column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<ContentApproval(content={self.content_id}, status={self.status})>"


class FoundingPartner(Base):
    """Early partner programme enrolment. Weekly deliveries are counts per week since enrolment."""

    __tablename__ = "founding_partners"

    partner_id = Column(String(36), ForeignKey("explore_partners.id"), primary_key=True)
    enrollment_date = Column(Integer, nullable=False)
    benefits_end_date = Column(Integer, nullable=False)
    pre_launch_content_delivered = Column(Integer, default=0)
    weekly_content_delivered = Column(JSON)
    warning_count = Column(Integer, default=0)
    status = Column(String(20), default="active")  # active, warning, revoked
    created_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<FoundingPartner(partner={self.partner_id}, status={self.status})>"


# ═══ Launch ═══


class LaunchPhase(Base):
    __tablename__ = "launch_phases"

    id = Column(String(36), primary_key=True)
    phase = Column(String(30), nullable=False)
    start_date = Column(Integer, nullable=False)
    end_date = Column(Integer)
    primary_content_ratio = Column(Float, default=0.70)
    algorithm_weight = Column(Float, default=0.0)
    editorial_weight = Column(Float, default=1.0)
    is_active = Column(Boolean, default=False)
    created_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<LaunchPhase(phase={self.phase}, active={self.is_active})>"


class LaunchContentQuota(Base):
    __tablename__ = "launch_content_quotas"

    id = Column(String(36), primary_key=True)
    content_type = Column(String(50), nullable=False, unique=True)
    required_count = Column(Integer, nullable=False)
    current_count = Column(Integer, default=0)
    last_updated = Column(Integer)

    def __repr__(self) -> str:
        return f"<LaunchContentQuota({self.content_type}: {self.current_count}/{self.required_count})>"


class LaunchMetric(Base):
    __tablename__ = "launch_metrics"

    id = Column(String(36), primary_key=True)
    metric_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    topic_engagement_rate = Column(Float, default=0.0)
    partner_content_watch_rate = Column(Float, default=0.0)
    save_share_rate = Column(Float, default=0.0)
    weekly_visits_per_user = Column(Float, default=0.0)
    algorithm_confidence_score = Column(Float, default=0.0)
    created_at = Column(Integer)


# ═══ Billing ═══


class SubscriptionPlan(Base):
    """Subscription plan. Prices in cents."""

    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_id = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(100), nullable=False)
    category = Column(String(30), nullable=False)  # agent, agency, developer
    price_zar = Column(Integer, default=0)
    is_trial_plan = Column(Boolean, default=False)
    is_free_plan = Column(Boolean, default=False)
    trial_days = Column(Integer, default=0)
    upgrade_to_plan_id = Column(String(50))
    downgrade_to_plan_id = Column(String(50))
    features = Column(JSON)
    limits = Column(JSON)
    permissions = Column(JSON)
    sort_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan(plan_id={self.plan_id}, category={self.category})>"


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, unique=True)
    plan_id = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    trial_started_at = Column(Integer)
    trial_ends_at = Column(Integer)
    trial_used = Column(Boolean, default=False)
    previous_plan_id = Column(String(50))
    current_period_end = Column(Integer)
    downgrade_scheduled = Column(Boolean, default=False)
    downgrade_to_plan_id = Column(String(50))
    downgrade_effective_date = Column(Integer)
    cancelled_at = Column(Integer)
    created_at = Column(Integer)
    updated_at = Column(Integer)

    def __repr__(self) -> str:
        return f"<UserSubscription(user={self.user_id}, plan={self.plan_id}, status={self.status})>"


class SubscriptionEvent(Base):
    __tablename__ = "subscription_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    subscription_id = Column(Integer)
    event_type = Column(String(50), nullable=False)
    event_data = Column(JSON)
    created_at = Column(Integer)


class BoostCredit(Base):
    __tablename__ = "boost_credits"

    user_id = Column(Integer, primary_key=True)
    total_credits = Column(Integer, default=0)
    used_credits = Column(Integer, default=0)
    reset_at = Column(Integer)
    updated_at = Column(Integer)


class SchemaMigration(Base):
    """Applied schema migrations."""

    __tablename__ = "schema_migrations"

    version = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    applied_at = Column(Integer)


class Database:
    """Database interface for marketplace data."""

    def __init__(self, db_url: str):
        """
        Initialize database connection.

        Args:
            db_url: SQLAlchemy URL, or a path to a SQLite database file
        """
        if "://" not in db_url:
            db_url = f"sqlite:///{db_url}"
        self.url = db_url
        self.engine = create_engine(db_url)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database initialized: {db_url}")

    def create_tables(self) -> None:
        """Create all tables if they don't exist, then apply schema migrations."""
        from marketplace.migrations import MigrationRunner

        Base.metadata.create_all(self.engine)
        MigrationRunner(self).apply_all()
        logger.info("Database tables created")

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.Session()

    # Location operations
    def save_province(self, name: str, slug: Optional[str] = None) -> int:
        """Save a province (upsert by slug). Returns its id."""
        slug = slug or slugify(name)
        with self.get_session() as session:
            province = session.query(Province).filter_by(slug=slug).first()
            if province:
                province.name = name
            else:
                province = Province(name=name, slug=slug)
                session.add(province)
            session.commit()
            logger.debug(f"Saved province {slug}")
            return province.id

    def save_city(self, province_id: int, name: str, slug: Optional[str] = None) -> int:
        """Save a city (upsert by slug). Returns its id."""
        slug = slug or slugify(name)
        with self.get_session() as session:
            city = session.query(City).filter_by(slug=slug).first()
            if city:
                city.name = name
                city.province_id = province_id
            else:
                city = City(province_id=province_id, name=name, slug=slug)
                session.add(city)
            session.commit()
            logger.debug(f"Saved city {slug}")
            return city.id

    def save_suburb(self, city_id: int, name: str, slug: Optional[str] = None) -> int:
        """Save a suburb (upsert by slug). Returns its id."""
        slug = slug or slugify(name)
        with self.get_session() as session:
            suburb = session.query(Suburb).filter_by(slug=slug).first()
            if suburb:
                suburb.name = name
                suburb.city_id = city_id
            else:
                suburb = Suburb(city_id=city_id, name=name, slug=slug)
                session.add(suburb)
            session.commit()
            logger.debug(f"Saved suburb {slug}")
            return suburb.id

    def get_province(self, province_id: int) -> Optional[Province]:
        with self.get_session() as session:
            return session.get(Province, province_id)

    def get_city(self, city_id: int) -> Optional[City]:
        with self.get_session() as session:
            return session.get(City, city_id)

    def get_province_by_slug(self, slug: str) -> Optional[Province]:
        with self.get_session() as session:
            return session.query(Province).filter_by(slug=slugify(slug)).first()

    def get_city_by_slug(self, slug: str) -> Optional[City]:
        with self.get_session() as session:
            return session.query(City).filter_by(slug=slugify(slug)).first()

    def get_suburb_by_slug(self, slug: str) -> Optional[Suburb]:
        with self.get_session() as session:
            return session.query(Suburb).filter_by(slug=slugify(slug)).first()

    def get_provinces(self) -> List[Province]:
        with self.get_session() as session:
            return session.query(Province).order_by(Province.name).all()

    def get_cities(self, province_id: Optional[int] = None) -> List[City]:
        with self.get_session() as session:
            query = session.query(City)
            if province_id is not None:
                query = query.filter_by(province_id=province_id)
            return query.order_by(City.name).all()

    def get_suburbs(self, city_id: Optional[int] = None) -> List[Suburb]:
        with self.get_session() as session:
            query = session.query(Suburb)
            if city_id is not None:
                query = query.filter_by(city_id=city_id)
            return query.order_by(Suburb.name).all()

    # Agency operations
    def save_agency(self, name: str, city: Optional[str] = None) -> int:
        """Save an agency (upsert by slug). Returns its id."""
        slug = slugify(name)
        with self.get_session() as session:
            agency = session.query(Agency).filter_by(slug=slug).first()
            if agency:
                agency.name = name
                agency.city = city
            else:
                agency = Agency(name=name, slug=slug, city=city, created_at=now_ts())
                session.add(agency)
            session.commit()
            return agency.id

    def save_agent(
        self,
        name: str,
        agency_id: Optional[int] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> int:
        """Create an agent. Returns its id."""
        with self.get_session() as session:
            agent = Agent(
                name=name,
                agency_id=agency_id,
                email=email,
                phone=phone,
                created_at=now_ts(),
            )
            session.add(agent)
            session.commit()
            logger.debug(f"Saved agent {name}")
            return agent.id

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        with self.get_session() as session:
            return session.get(Agent, agent_id)

    def get_agent_directory(self, agent_ids: Iterable[int]) -> Dict[int, Dict[str, Optional[str]]]:
        """Agent and agency names keyed by agent id."""
        ids = {agent_id for agent_id in agent_ids if agent_id is not None}
        if not ids:
            return {}
        with self.get_session() as session:
            rows = (
                session.query(Agent, Agency)
                .outerjoin(Agency, Agent.agency_id == Agency.id)
                .filter(Agent.id.in_(ids))
                .all()
            )
            return {
                agent.id: {
                    "name": agent.name,
                    "agency": agency.name if agency else None,
                    "email": agent.email,
                    "phone": agent.phone,
                }
                for agent, agency in rows
            }

    # Listing operations
    def save_property(self, **fields) -> int:
        """
        Create a property listing.

        Args:
            **fields: Column values; title, property_type, listing_type and price are required

        Returns:
            New property id
        """
        for required in ("title", "property_type", "listing_type", "price"):
            if fields.get(required) is None:
                raise ValueError(f"Property {required} is required")
        if fields["price"] < 0:
            raise ValueError("Property price cannot be negative")
        if fields["property_type"] not in PROPERTY_TYPES:
            raise ValueError(f"Unknown property type: {fields['property_type']}")
        if fields["listing_type"] not in LISTING_TYPES:
            raise ValueError(f"Unknown listing type: {fields['listing_type']}")
        if fields.get("status") is not None and fields["status"] not in PROPERTY_STATUSES:
            raise ValueError(f"Unknown property status: {fields['status']}")

        ts = now_ts()
        fields.setdefault("created_at", ts)
        fields.setdefault("updated_at", fields["created_at"])
        with self.get_session() as session:
            listing = Property(**fields)
            session.add(listing)
            session.commit()
            logger.debug(f"Saved property {listing.id}")
            return listing.id

    def get_property(self, property_id: int) -> Optional[Property]:
        """Get property by id."""
        with self.get_session() as session:
            return session.get(Property, property_id)

    def update_property_status(self, property_id: int, status: str) -> None:
        """Change a listing's status."""
        if status not in PROPERTY_STATUSES:
            raise ValueError(f"Unknown property status: {status}")
        with self.get_session() as session:
            listing = session.get(Property, property_id)
            if not listing:
                raise RecordNotFound(f"Property {property_id} not found")
            listing.status = status
            listing.updated_at = now_ts()
            session.commit()

    def add_property_image(
        self,
        property_id: int,
        image_url: str,
        is_primary: bool = False,
        display_order: int = 0,
    ) -> None:
        with self.get_session() as session:
            session.add(
                PropertyImage(
                    property_id=property_id,
                    image_url=image_url,
                    is_primary=is_primary,
                    display_order=display_order,
                )
            )
            session.commit()

    def get_images_for_properties(self, property_ids: List[int]) -> Dict[int, List[str]]:
        """Image URLs grouped by property, primary image first."""
        if not property_ids:
            return {}
        with self.get_session() as session:
            rows = (
                session.query(PropertyImage)
                .filter(PropertyImage.property_id.in_(property_ids))
                .order_by(PropertyImage.is_primary.desc(), PropertyImage.display_order.asc())
                .all()
            )
        images: Dict[int, List[str]] = {}
        for row in rows:
            images.setdefault(row.property_id, []).append(row.image_url)
        return images
