"""
Explore discovery feed.

Builds a feed page by ranking active content, scaling by content quality,
blending with editorial curation according to the launch phase, keeping the
share of primary content (property tours, development showcases) above the
phase's ratio, and capping boosted items.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import Config
from config.settings import LAUNCH_PHASES, NEUTRAL_SCORE, PRIMARY_CONTENT_TYPES
from marketplace.database import Database, ExploreContent
from marketplace.launch import LaunchTracker
from marketplace.quality import QualityScorer
from marketplace.ranking import FeedRanker, Location

logger = logging.getLogger(__name__)

EDITORIAL_FEATURED_SCORE = 100.0


@dataclass
class FeedPage:
    items: List[Dict] = field(default_factory=list)
    phase: Optional[str] = None
    total: int = 0
    has_more: bool = False


def content_to_item(row: ExploreContent) -> Dict:
    return {
        "id": row.id,
        "content_type": row.content_type,
        "title": row.title,
        "description": row.description,
        "tags": row.tags or [],
        "category": row.category,
        "thumbnail_url": row.thumbnail_url,
        "video_url": row.video_url,
        "location_lat": row.location_lat,
        "location_lng": row.location_lng,
        "partner_id": row.partner_id,
        "agency_id": row.agency_id,
        "view_count": row.view_count or 0,
        "is_featured": bool(row.is_featured),
        "created_at": row.created_at,
    }


def interleave_primary(items: List[Dict], primary_ratio: float) -> List[Dict]:
    """
    Merge primary and other content, both already in score order.

    Primary content is taken whenever picking anything else would drop the
    running primary share below primary_ratio. Otherwise the higher scoring
    head wins.
    """
    primary = [item for item in items if item["content_type"] in PRIMARY_CONTENT_TYPES]
    other = [item for item in items if item["content_type"] not in PRIMARY_CONTENT_TYPES]

    result = []
    primary_count = 0
    p = o = 0
    while p < len(primary) and o < len(other):
        must_take_primary = primary_count / (len(result) + 1) < primary_ratio
        if must_take_primary or primary[p]["ranking_score"] >= other[o]["ranking_score"]:
            result.append(primary[p])
            primary_count += 1
            p += 1
        else:
            result.append(other[o])
            o += 1

    result.extend(primary[p:])
    result.extend(other[o:])
    return result


class ExploreFeedService:
    """Builds Explore feed pages."""

    def __init__(
        self,
        database: Database,
        ranker: Optional[FeedRanker] = None,
        launch_tracker: Optional[LaunchTracker] = None,
    ):
        self.database = database
        self.ranker = ranker or FeedRanker(database)
        self.launch = launch_tracker or LaunchTracker(database)
        self.quality = QualityScorer(database)

    def _load_content(self, content_type: Optional[str] = None) -> List[Dict]:
        with self.database.get_session() as session:
            query = session.query(ExploreContent).filter(ExploreContent.is_active.is_(True))
            if content_type:
                query = query.filter(ExploreContent.content_type == content_type)
            rows = query.order_by(ExploreContent.created_at.desc(), ExploreContent.id.asc()).all()
        return [content_to_item(row) for row in rows]

    def get_feed(
        self,
        user_location: Optional[Location] = None,
        topic_id: Optional[str] = None,
        content_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        now: Optional[int] = None,
    ) -> FeedPage:
        """
        Build one page of the Explore feed.

        Args:
            user_location: (lat, lng) of the viewer
            topic_id: Topic whose boost campaigns apply
            content_type: Restrict to one content type
            limit: Page size (Config.FEED_PAGE_SIZE by default)
            offset: Items to skip
            now: Unix time used for recency and campaign windows

        Returns:
            FeedPage with the active phase name (None before launch tracking starts)
        """
        if limit is None:
            limit = Config.FEED_PAGE_SIZE
        if not 1 <= limit <= Config.MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {Config.MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("offset cannot be negative")

        phase = self.launch.get_current_phase()
        if phase:
            algorithm_weight = phase.algorithm_weight
            editorial_weight = phase.editorial_weight
            primary_ratio = phase.primary_content_ratio
        else:
            maturity = LAUNCH_PHASES["ecosystem_maturity"]
            algorithm_weight = maturity["algorithm_weight"]
            editorial_weight = maturity["editorial_weight"]
            primary_ratio = maturity["primary_content_ratio"]

        items = self._load_content(content_type)
        if not items:
            return FeedPage(items=[], phase=phase.phase if phase else None, total=0, has_more=False)

        ranked = self.ranker.rank_items(items, user_location=user_location, topic_id=topic_id, now=now)
        quality_scores = self.quality.get_quality_scores([str(item["id"]) for item in ranked])

        blended = []
        for item in ranked:
            visibility = QualityScorer.visibility_multiplier(quality_scores.get(str(item["id"]), NEUTRAL_SCORE))
            editorial = EDITORIAL_FEATURED_SCORE if item["is_featured"] else 0.0
            blended.append(
                {
                    **item,
                    "visibility_multiplier": visibility,
                    "ranking_score": algorithm_weight * item["ranking_score"] * visibility
                    + editorial_weight * editorial,
                    "base_score": algorithm_weight * item["base_score"] * visibility
                    + editorial_weight * editorial,
                }
            )
        blended.sort(key=lambda r: (-r["ranking_score"], str(r["id"])))

        feed = interleave_primary(blended, primary_ratio)
        feed = FeedRanker.ensure_boost_limit(feed)

        total = len(feed)
        page = feed[offset:offset + limit]
        logger.debug(
            f"Feed built: {total} items, phase={phase.phase if phase else 'none'}, "
            f"algorithm={algorithm_weight}, editorial={editorial_weight}"
        )
        return FeedPage(
            items=page,
            phase=phase.phase if phase else None,
            total=total,
            has_more=offset + limit < total,
        )

    def get_agency_feed(self, agency_id: int, limit: Optional[int] = None, offset: int = 0) -> FeedPage:
        """Active content attributed to an agency, featured first then newest."""
        if limit is None:
            limit = Config.FEED_PAGE_SIZE
        if not 1 <= limit <= Config.MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {Config.MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("offset cannot be negative")

        with self.database.get_session() as session:
            query = session.query(ExploreContent).filter(
                ExploreContent.is_active.is_(True),
                ExploreContent.agency_id == agency_id,
            )
            total = query.count()
            rows = (
                query.order_by(
                    ExploreContent.is_featured.desc(),
                    ExploreContent.created_at.desc(),
                    ExploreContent.id.asc(),
                )
                .offset(offset)
                .limit(limit)
                .all()
            )

        phase = self.launch.get_current_phase()
        return FeedPage(
            items=[content_to_item(row) for row in rows],
            phase=phase.phase if phase else None,
            total=total,
            has_more=offset + limit < total,
        )
