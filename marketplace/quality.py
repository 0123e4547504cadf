"""
Content quality scoring for the Explore feed.

Scores combine metadata completeness (20%), engagement (40%) and production
quality (25%), less a penalty for negative signals such as quick skips and
reports (15%).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.settings import (
    LOW_QUALITY_THRESHOLD,
    NEGATIVE_SIGNAL_WEIGHTS,
    NEUTRAL_SCORE,
    QUALITY_WEIGHTS,
    UNDERPERFORMANCE_THRESHOLD,
)
from marketplace.database import ContentQualityScore, Database, ExploreContent, RecordNotFound
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)


@dataclass
class ContentMetadata:
    title: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    location: Optional[str] = None
    thumbnail_url: Optional[str] = None
    category: Optional[str] = None


@dataclass
class EngagementData:
    watch_time: float = 0.0  # seconds
    total_duration: float = 0.0  # seconds
    saves: int = 0
    shares: int = 0
    click_throughs: int = 0


def calculate_metadata_score(metadata: ContentMetadata) -> float:
    """Metadata completeness score (0-100)."""
    score = 0
    max_score = 20 + 25 + 20 + 15 + 10 + 10

    title = metadata.title or ""
    if len(title) >= 10:
        score += 20
    elif len(title) >= 5:
        score += 10

    description = metadata.description or ""
    if len(description) >= 100:
        score += 25
    elif len(description) >= 50:
        score += 15
    elif len(description) >= 20:
        score += 8

    tags = metadata.tags or []
    if len(tags) >= 5:
        score += 20
    elif len(tags) >= 3:
        score += 12
    elif len(tags) >= 1:
        score += 6

    if metadata.location:
        score += 15
    if metadata.thumbnail_url:
        score += 10
    if metadata.category:
        score += 10

    return score / max_score * 100


def calculate_engagement_score(engagement: EngagementData) -> float:
    """Engagement score (0-100) from completion rate, saves, shares and click-throughs."""
    score = 0.0
    if engagement.watch_time and engagement.total_duration:
        score += min(engagement.watch_time / engagement.total_duration, 1.0) * 40
    score += min(engagement.saves * 3, 30)
    score += min(engagement.shares * 5, 20)
    score += min(engagement.click_throughs * 2, 10)
    return min(score, 100.0)


class QualityScorer:
    """Calculates and stores content quality scores."""

    def __init__(self, database: Database, weights: Optional[Dict[str, float]] = None):
        self.database = database
        self.weights = dict(weights or QUALITY_WEIGHTS)

    def calculate_overall_score(
        self,
        metadata_score: float,
        engagement_score: float,
        production_score: float,
        negative_signals: int,
    ) -> float:
        base = (
            metadata_score * self.weights["metadata"]
            + engagement_score * self.weights["engagement"]
            + production_score * self.weights["production"]
        )
        penalty = min(negative_signals * self.weights["negative_signals"] * 10, 50)
        return max(base - penalty, 0.0)

    def calculate_initial_score(self, content_id, metadata: ContentMetadata) -> float:
        """
        Score new content from its metadata alone.

        Production and engagement start at a neutral 50.

        Returns:
            Initial overall score
        """
        content_id = str(content_id)
        metadata_score = calculate_metadata_score(metadata)
        initial = (
            metadata_score * self.weights["metadata"]
            + NEUTRAL_SCORE * self.weights["production"]
            + NEUTRAL_SCORE * self.weights["engagement"]
        )

        with self.database.get_session() as session:
            record = session.get(ContentQualityScore, content_id)
            if record:
                record.overall_score = initial
                record.metadata_score = metadata_score
                record.last_calculated_at = now_ts()
            else:
                session.add(
                    ContentQualityScore(
                        content_id=content_id,
                        overall_score=initial,
                        metadata_score=metadata_score,
                        engagement_score=NEUTRAL_SCORE,
                        production_score=NEUTRAL_SCORE,
                        negative_signals=0,
                        last_calculated_at=now_ts(),
                    )
                )
            session.commit()

        logger.debug(f"Initial quality score for {content_id}: {initial:.1f}")
        return initial

    def update_score_from_engagement(self, content_id, engagement: EngagementData) -> float:
        """Blend fresh engagement into the stored score (70% old, 30% new)."""
        content_id = str(content_id)
        with self.database.get_session() as session:
            record = session.get(ContentQualityScore, content_id)
            if not record:
                raise RecordNotFound(f"Quality score not found for content {content_id}")

            fresh = calculate_engagement_score(engagement)
            record.engagement_score = record.engagement_score * 0.7 + fresh * 0.3
            record.overall_score = self.calculate_overall_score(
                record.metadata_score,
                record.engagement_score,
                record.production_score,
                record.negative_signals,
            )
            record.last_calculated_at = now_ts()
            session.commit()
            return record.overall_score

    def record_negative_signal(self, content_id, signal_type: str) -> float:
        """Record a quick skip (+1) or report (+5) and rescore."""
        if signal_type not in NEGATIVE_SIGNAL_WEIGHTS:
            raise ValueError(f"Unknown negative signal: {signal_type}")
        content_id = str(content_id)
        with self.database.get_session() as session:
            record = session.get(ContentQualityScore, content_id)
            if not record:
                raise RecordNotFound(f"Quality score not found for content {content_id}")

            record.negative_signals = (record.negative_signals or 0) + NEGATIVE_SIGNAL_WEIGHTS[signal_type]
            record.overall_score = self.calculate_overall_score(
                record.metadata_score,
                record.engagement_score,
                record.production_score,
                record.negative_signals,
            )
            record.last_calculated_at = now_ts()
            session.commit()
            return record.overall_score

    def get_quality_score(self, content_id) -> Optional[ContentQualityScore]:
        with self.database.get_session() as session:
            return session.get(ContentQualityScore, str(content_id))

    def get_quality_scores(self, content_ids: List[str]) -> Dict[str, float]:
        """Overall scores keyed by content id."""
        if not content_ids:
            return {}
        with self.database.get_session() as session:
            rows = (
                session.query(ContentQualityScore)
                .filter(ContentQualityScore.content_id.in_([str(c) for c in content_ids]))
                .all()
            )
            return {row.content_id: row.overall_score for row in rows}

    def get_underperforming_content(self, partner_id: str) -> List[str]:
        """Content ids of a partner scoring below the underperformance threshold, worst first."""
        with self.database.get_session() as session:
            content_ids = [
                str(row.id)
                for row in session.query(ExploreContent.id).filter(ExploreContent.partner_id == partner_id).all()
            ]
            if not content_ids:
                return []
            rows = (
                session.query(ContentQualityScore)
                .filter(
                    ContentQualityScore.content_id.in_(content_ids),
                    ContentQualityScore.overall_score < UNDERPERFORMANCE_THRESHOLD,
                )
                .order_by(ContentQualityScore.overall_score.asc())
                .all()
            )
            return [row.content_id for row in rows]

    def notify_partner_of_low_quality(self, partner_id: str, content_ids: List[str]) -> None:
        logger.warning(
            f"[Quality Alert] Partner {partner_id} has {len(content_ids)} underperforming "
            f"content pieces: {content_ids}"
        )

    @staticmethod
    def visibility_multiplier(quality_score: float) -> float:
        """Feed visibility multiplier for a quality score."""
        if quality_score >= 70:
            return 1.0
        if quality_score >= 50:
            return 0.8
        if quality_score >= LOW_QUALITY_THRESHOLD:
            return 0.5
        return 0.2
