"""
Feed ranking for Explore content.

Each item gets a weighted score from user interest, content quality, local
relevance, recency and partner trust. Boosted content is scaled by a
multiplier that grows with the logarithm of the campaign budget, and the
share of boosted items in a feed is capped.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from config.settings import (
    BOOST_BUDGET_REFERENCE,
    BOOST_MULTIPLIER_MAX,
    BOOST_MULTIPLIER_MIN,
    BOOST_RATIO_LIMIT,
    DAY,
    FAR_DISTANCE_SCORE,
    LOCAL_RELEVANCE_BANDS,
    NEUTRAL_SCORE,
    RANKING_WEIGHTS,
    RECENCY_HALF_LIFE_DAYS,
)
from marketplace.boosts import BoostCampaignService
from marketplace.database import BoostCampaign, Database
from marketplace.partners import PartnerService
from marketplace.quality import QualityScorer
from marketplace.utils import clamp, haversine_km, now_ts

logger = logging.getLogger(__name__)

Location = Tuple[float, float]  # (lat, lng)


@dataclass
class RankingFactors:
    user_interest_score: float = NEUTRAL_SCORE
    quality_score: float = NEUTRAL_SCORE
    local_relevance_score: float = NEUTRAL_SCORE
    recency_score: float = NEUTRAL_SCORE
    trust_score: float = NEUTRAL_SCORE
    boost_multiplier: float = 1.0


def boost_multiplier(campaign: Optional[BoostCampaign]) -> float:
    """
    Ranking multiplier for a boost campaign.

    Organic content (no campaign, or one that is not active) gets 1.0. Active
    campaigns get between BOOST_MULTIPLIER_MIN and BOOST_MULTIPLIER_MAX,
    scaled by log(1 + budget) against the reference budget, so each extra
    rand buys less lift than the one before.
    """
    if campaign is None or campaign.status != "active":
        return 1.0

    budget = max(campaign.budget or 0.0, 0.0)
    budget_factor = min(math.log1p(budget) / math.log1p(BOOST_BUDGET_REFERENCE), 1.0)
    return BOOST_MULTIPLIER_MIN + budget_factor * (BOOST_MULTIPLIER_MAX - BOOST_MULTIPLIER_MIN)


def calculate_recency_score(created_at: Optional[int], now: Optional[int] = None) -> float:
    """Recency score (0-100) halving every RECENCY_HALF_LIFE_DAYS."""
    if created_at is None:
        return NEUTRAL_SCORE
    now = now if now is not None else now_ts()
    age_days = (now - created_at) / DAY
    return clamp(100 * math.pow(0.5, age_days / RECENCY_HALF_LIFE_DAYS), 0.0, 100.0)


def calculate_local_relevance_score(
    user_location: Optional[Location],
    content_location: Optional[Location],
) -> float:
    """Distance band score (0-100); neutral when either location is unknown."""
    if not user_location or not content_location:
        return NEUTRAL_SCORE
    if None in user_location or None in content_location:
        return NEUTRAL_SCORE

    distance = haversine_km(user_location[0], user_location[1], content_location[0], content_location[1])
    for max_km, score in LOCAL_RELEVANCE_BANDS:
        if distance <= max_km:
            return float(score)
    return float(FAR_DISTANCE_SCORE)


class FeedRanker:
    """Ranks Explore feed items."""

    def __init__(self, database: Database, weights: Optional[Dict[str, float]] = None):
        self.database = database
        self.weights = {**RANKING_WEIGHTS, **(weights or {})}

        total = sum(self.weights.values())
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Ranking weights must sum to 1.0, got {total:.3f}")

        self.quality = QualityScorer(database)
        self.partners = PartnerService(database)
        self.boosts = BoostCampaignService(database)

    def calculate_ranking_score(self, factors: RankingFactors) -> float:
        base = (
            factors.user_interest_score / 100 * self.weights["user_interest"]
            + factors.quality_score / 100 * self.weights["content_quality"]
            + factors.local_relevance_score / 100 * self.weights["local_relevance"]
            + factors.recency_score / 100 * self.weights["recency"]
            + factors.trust_score / 100 * self.weights["partner_trust"]
        )
        return min(base * factors.boost_multiplier * 100, 100.0)

    def rank_items(
        self,
        items: List[Dict],
        user_location: Optional[Location] = None,
        topic_id: Optional[str] = None,
        now: Optional[int] = None,
    ) -> List[Dict]:
        """
        Score and sort feed items.

        Args:
            items: Dicts with at least id; optionally partner_id, created_at,
                location_lat and location_lng
            user_location: (lat, lng) of the viewer
            topic_id: Topic whose boost campaigns apply (all campaigns if None)
            now: Unix time used for recency and campaign windows

        Returns:
            Copies of the items, highest score first, with ranking_score,
            base_score, boost_multiplier, is_boosted and boost_campaign_id
        """
        if not items:
            return []
        now = now if now is not None else now_ts()

        quality_scores = self.quality.get_quality_scores([str(item["id"]) for item in items])
        trust_scores = self.partners.get_trust_scores(item.get("partner_id") for item in items)
        campaigns: Dict[str, BoostCampaign] = {}
        for campaign in self.boosts.get_active_campaigns(topic_id, now=now):
            campaigns.setdefault(campaign.content_id, campaign)

        ranked = []
        for item in items:
            content_id = str(item["id"])
            campaign = campaigns.get(content_id)
            content_location = None
            if item.get("location_lat") is not None and item.get("location_lng") is not None:
                content_location = (item["location_lat"], item["location_lng"])

            factors = RankingFactors(
                user_interest_score=NEUTRAL_SCORE,
                quality_score=quality_scores.get(content_id, NEUTRAL_SCORE),
                local_relevance_score=calculate_local_relevance_score(user_location, content_location),
                recency_score=calculate_recency_score(item.get("created_at"), now),
                trust_score=trust_scores.get(item.get("partner_id"), NEUTRAL_SCORE),
                boost_multiplier=boost_multiplier(campaign),
            )
            base_factors = RankingFactors(**{**factors.__dict__, "boost_multiplier": 1.0})

            ranked.append(
                {
                    **item,
                    "ranking_score": self.calculate_ranking_score(factors),
                    "base_score": self.calculate_ranking_score(base_factors),
                    "boost_multiplier": factors.boost_multiplier,
                    "is_boosted": campaign is not None,
                    "boost_campaign_id": campaign.id if campaign else None,
                }
            )

        ranked.sort(key=lambda r: (-r["ranking_score"], str(r["id"])))
        logger.debug(f"Ranked {len(ranked)} items ({len(campaigns)} active campaigns)")
        return ranked

    @staticmethod
    def ensure_boost_limit(items: List[Dict], ratio: float = BOOST_RATIO_LIMIT) -> List[Dict]:
        """
        Cap boosted items at one per 1/ratio organic items, in feed order.

        The first boosted item is always allowed. A later one keeps its boost
        only while boosted_so_far / organic_so_far is strictly below ratio;
        otherwise it is demoted to organic and its score reverts to base_score.
        """
        result = []
        boosted = 0
        organic = 0
        for item in items:
            if not item.get("is_boosted"):
                result.append(item)
                organic += 1
                continue

            if boosted == 0 or (organic > 0 and boosted / organic < ratio):
                result.append(item)
                boosted += 1
            else:
                result.append(
                    {
                        **item,
                        "is_boosted": False,
                        "boost_campaign_id": None,
                        "boost_multiplier": 1.0,
                        "ranking_score": item.get("base_score", item["ranking_score"]),
                    }
                )
                organic += 1
        return result
