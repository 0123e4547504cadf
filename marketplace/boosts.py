"""
Paid boost campaigns for partner content in the Explore feed.
"""

import logging
import math
import uuid
from typing import Dict, List, Optional

from sqlalchemy import or_

from config.settings import DAY, DEFAULT_COST_PER_IMPRESSION
from marketplace.database import BoostCampaign, Database, ExploreContent, ExplorePartner, RecordNotFound
from marketplace.utils import now_ts, safe_division

logger = logging.getLogger(__name__)


class BoostCampaignService:
    """Creates boost campaigns and tracks their spend."""

    def __init__(self, database: Database):
        self.database = database

    def create_campaign(
        self,
        partner_id: str,
        content_id,
        topic_id: Optional[str],
        budget: float,
        duration_days: int,
        cost_per_impression: float = DEFAULT_COST_PER_IMPRESSION,
        start_date: Optional[int] = None,
    ) -> BoostCampaign:
        """
        Create and activate a boost campaign.

        Args:
            partner_id: Partner paying for the campaign
            content_id: Content to boost (must belong to the partner)
            topic_id: Topic the boost applies to (None for all topics)
            budget: Budget in rands
            duration_days: Campaign length in days
            cost_per_impression: Spend per impression in rands
            start_date: Unix start time (now by default)

        Returns:
            The new campaign
        """
        if budget <= 0:
            raise ValueError("Campaign budget must be positive")
        if duration_days < 1:
            raise ValueError("Campaign duration must be at least one day")
        if cost_per_impression <= 0:
            raise ValueError("Cost per impression must be positive")

        content_id = str(content_id)
        start = start_date if start_date is not None else now_ts()

        with self.database.get_session() as session:
            if not session.get(ExplorePartner, partner_id):
                raise RecordNotFound(f"Partner {partner_id} not found")
            content = session.get(ExploreContent, int(content_id))
            if not content:
                raise RecordNotFound(f"Content {content_id} not found")
            if content.partner_id != partner_id:
                raise ValueError(f"Content {content_id} does not belong to partner {partner_id}")

            existing = self._active_query(session, start).filter(BoostCampaign.content_id == content_id).first()
            if existing:
                raise ValueError(f"Content {content_id} is already boosted by campaign {existing.id}")

            campaign = BoostCampaign(
                id=str(uuid.uuid4()),
                partner_id=partner_id,
                content_id=content_id,
                topic_id=topic_id,
                budget=float(budget),
                spent=0.0,
                status="active",
                start_date=start,
                end_date=start + duration_days * DAY,
                impressions=0,
                clicks=0,
                cost_per_impression=cost_per_impression,
                created_at=now_ts(),
            )
            session.add(campaign)
            session.commit()

        logger.info(f"Created boost campaign {campaign.id} for content {content_id} (budget R{budget:.2f})")
        return campaign

    def get_campaign(self, campaign_id: str) -> Optional[BoostCampaign]:
        with self.database.get_session() as session:
            return session.get(BoostCampaign, campaign_id)

    def _require(self, session, campaign_id: str) -> BoostCampaign:
        campaign = session.get(BoostCampaign, campaign_id)
        if not campaign:
            raise RecordNotFound(f"Campaign {campaign_id} not found")
        return campaign

    def record_impression(self, campaign_id: str) -> bool:
        """
        Charge one impression to an active campaign.

        Returns:
            True if the impression was charged
        """
        with self.database.get_session() as session:
            campaign = self._require(session, campaign_id)
            if campaign.status != "active":
                return False

            campaign.spent = round((campaign.spent or 0.0) + campaign.cost_per_impression, 4)
            campaign.impressions = (campaign.impressions or 0) + 1
            if campaign.spent >= campaign.budget:
                campaign.status = "depleted"
                logger.info(f"Campaign {campaign_id} budget depleted")
            session.commit()
            return True

    def record_click(self, campaign_id: str) -> bool:
        with self.database.get_session() as session:
            campaign = self._require(session, campaign_id)
            if campaign.status != "active":
                return False
            campaign.clicks = (campaign.clicks or 0) + 1
            session.commit()
            return True

    def pause(self, campaign_id: str) -> None:
        with self.database.get_session() as session:
            campaign = self._require(session, campaign_id)
            if campaign.status != "active":
                raise ValueError(f"Cannot pause a {campaign.status} campaign")
            campaign.status = "paused"
            session.commit()
        logger.info(f"Paused campaign {campaign_id}")

    def resume(self, campaign_id: str, now: Optional[int] = None) -> None:
        """Reactivate a paused campaign that still has budget and time left."""
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            campaign = self._require(session, campaign_id)
            if campaign.status in ("depleted", "completed"):
                raise ValueError(f"Cannot resume a {campaign.status} campaign")
            if campaign.spent >= campaign.budget:
                raise ValueError("Cannot resume campaign: budget depleted")
            if campaign.end_date and now > campaign.end_date:
                raise ValueError("Cannot resume campaign: campaign has expired")
            campaign.status = "active"
            session.commit()
        logger.info(f"Resumed campaign {campaign_id}")

    def complete_expired(self, now: Optional[int] = None) -> int:
        """
        Mark running campaigns past their end date as completed.

        Returns:
            Number of campaigns completed
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            expired = (
                session.query(BoostCampaign)
                .filter(
                    BoostCampaign.status.in_(("active", "paused")),
                    BoostCampaign.end_date.isnot(None),
                    BoostCampaign.end_date < now,
                )
                .all()
            )
            for campaign in expired:
                campaign.status = "completed"
            session.commit()

        if expired:
            logger.info(f"Completed {len(expired)} expired campaigns")
        return len(expired)

    def get_analytics(self, campaign_id: str, now: Optional[int] = None) -> Dict:
        """Spend and performance summary for a campaign."""
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            campaign = self._require(session, campaign_id)

        impressions = campaign.impressions or 0
        clicks = campaign.clicks or 0
        spent = campaign.spent or 0.0
        days_remaining = 0
        if campaign.end_date:
            days_remaining = max(0, math.ceil((campaign.end_date - now) / DAY))

        return {
            "campaign_id": campaign.id,
            "status": campaign.status,
            "impressions": impressions,
            "clicks": clicks,
            "spent": spent,
            "budget": campaign.budget,
            "remaining_budget": max(campaign.budget - spent, 0.0),
            "click_through_rate": safe_division(clicks, impressions) * 100,
            "cost_per_click": safe_division(spent, clicks),
            "cost_per_impression": safe_division(spent, impressions),
            "days_remaining": days_remaining,
        }

    def get_active_campaigns(self, topic_id: Optional[str] = None, now: Optional[int] = None) -> List[BoostCampaign]:
        """Campaigns currently running, optionally for one topic."""
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            query = self._active_query(session, now)
            if topic_id is not None:
                query = query.filter(BoostCampaign.topic_id == topic_id)
            return query.order_by(BoostCampaign.created_at.asc()).all()

    @staticmethod
    def _active_query(session, now: int):
        return session.query(BoostCampaign).filter(
            BoostCampaign.status == "active",
            BoostCampaign.start_date <= now,
            or_(BoostCampaign.end_date.is_(None), BoostCampaign.end_date >= now),
        )
