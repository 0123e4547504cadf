"""
Explore content partners: registration, verification, trust scoring and content approval.
"""

import logging
import uuid
from typing import Dict, Iterable, Optional

from sqlalchemy import func

from config.settings import AUTO_APPROVAL_THRESHOLD, NEUTRAL_SCORE
from marketplace.database import (
    ContentQualityScore,
    Database,
    ExploreContent,
    ExplorePartner,
    RecordNotFound,
)
from marketplace.founding_partners import FoundingPartnerService
from marketplace.launch import LaunchTracker
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)

VERIFICATION_POINTS = {"verified": 30, "pending": 15, "rejected": 0}
REVIEWS_BASELINE = 10
ENGAGEMENT_BASELINE = 10


class PartnerService:
    """Manages Explore partners and their trust scores."""

    def __init__(
        self,
        database: Database,
        launch_tracker: Optional[LaunchTracker] = None,
        founding_partners: Optional[FoundingPartnerService] = None,
    ):
        self.database = database
        self.launch_tracker = launch_tracker or LaunchTracker(database)
        self.founding_partners = founding_partners or FoundingPartnerService(database, self.launch_tracker)

    def register_partner(
        self,
        company_name: str,
        user_id: str,
        tier_id: int = 1,
        description: Optional[str] = None,
    ) -> str:
        """
        Register a new partner account.

        Args:
            company_name: Display name of the partner
            user_id: Owning user (one partner per user)
            tier_id: Partner tier
            description: Optional profile text

        Returns:
            New partner id
        """
        if not company_name or not company_name.strip():
            raise ValueError("Company name is required")

        partner_id = str(uuid.uuid4())
        ts = now_ts()
        with self.database.get_session() as session:
            if session.query(ExplorePartner).filter_by(user_id=str(user_id)).first():
                raise ValueError("User already has a partner account")
            session.add(
                ExplorePartner(
                    id=partner_id,
                    user_id=str(user_id),
                    tier_id=tier_id,
                    company_name=company_name.strip(),
                    description=description,
                    verification_status="pending",
                    trust_score=NEUTRAL_SCORE,
                    approved_content_count=0,
                    created_at=ts,
                    updated_at=ts,
                )
            )
            session.commit()

        logger.info(f"Registered partner {company_name} ({partner_id})")
        return partner_id

    def get_partner(self, partner_id: str) -> Optional[ExplorePartner]:
        with self.database.get_session() as session:
            return session.get(ExplorePartner, partner_id)

    def get_partner_by_user(self, user_id: str) -> Optional[ExplorePartner]:
        with self.database.get_session() as session:
            return session.query(ExplorePartner).filter_by(user_id=str(user_id)).first()

    def _set_verification(self, partner_id: str, status: str) -> float:
        with self.database.get_session() as session:
            partner = session.get(ExplorePartner, partner_id)
            if not partner:
                raise RecordNotFound(f"Partner {partner_id} not found")
            partner.verification_status = status
            partner.updated_at = now_ts()
            session.commit()
        logger.info(f"Partner {partner_id} marked {status}")
        return self.calculate_trust_score(partner_id)

    def verify_partner(self, partner_id: str) -> float:
        """Mark a partner verified. Returns the recalculated trust score."""
        return self._set_verification(partner_id, "verified")

    def reject_partner(self, partner_id: str) -> float:
        return self._set_verification(partner_id, "rejected")

    def calculate_trust_score(self, partner_id: str) -> float:
        """
        Recalculate and store a partner's trust score (0-100).

        Verification status contributes up to 30 points, average content
        quality up to 30, and reviews and engagement a baseline of 10 each.

        Returns:
            The new trust score
        """
        with self.database.get_session() as session:
            partner = session.get(ExplorePartner, partner_id)
            if not partner:
                raise RecordNotFound(f"Partner {partner_id} not found")

            content_ids = [
                str(row.id)
                for row in session.query(ExploreContent.id).filter(ExploreContent.partner_id == partner_id).all()
            ]
            avg_quality = None
            if content_ids:
                avg_quality = (
                    session.query(func.avg(ContentQualityScore.overall_score))
                    .filter(ContentQualityScore.content_id.in_(content_ids))
                    .scalar()
                )
            if avg_quality is None:
                avg_quality = NEUTRAL_SCORE

            score = VERIFICATION_POINTS.get(partner.verification_status, 0)
            score += avg_quality / 100 * 30
            score += REVIEWS_BASELINE
            score += ENGAGEMENT_BASELINE
            score = round(score, 2)

            partner.trust_score = score
            partner.updated_at = now_ts()
            session.commit()

        logger.debug(f"Trust score for partner {partner_id}: {score}")
        return score

    def get_trust_scores(self, partner_ids: Iterable[str]) -> Dict[str, float]:
        """Trust scores keyed by partner id."""
        ids = {pid for pid in partner_ids if pid}
        if not ids:
            return {}
        with self.database.get_session() as session:
            rows = session.query(ExplorePartner).filter(ExplorePartner.id.in_(ids)).all()
            return {row.id: row.trust_score for row in rows}

    def is_eligible_for_auto_approval(self, partner_id: str) -> bool:
        """Partners with enough approved content skip the manual review queue."""
        partner = self.get_partner(partner_id)
        return partner is not None and (partner.approved_content_count or 0) >= AUTO_APPROVAL_THRESHOLD

    def approve_content(self, content_id: int, now: Optional[int] = None) -> ExploreContent:
        """
        Approve a piece of partner content for the feed.

        Activates the content, credits the partner's approved count, counts it
        towards the launch quota for its content type and, for founding
        partners, towards their content commitment. Approving content that is
        already approved changes nothing.
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            content = session.get(ExploreContent, content_id)
            if not content:
                raise RecordNotFound(f"Content {content_id} not found")
            if content.approved_at is not None:
                logger.debug(f"Content {content_id} already approved")
                return content

            content.is_active = True
            content.approved_at = now
            content.updated_at = now
            if content.partner_id:
                partner = session.get(ExplorePartner, content.partner_id)
                if partner:
                    partner.approved_content_count = (partner.approved_content_count or 0) + 1
            session.commit()

        self.launch_tracker.increment_content_quota(content.content_type)
        if content.partner_id:
            self.founding_partners.track_content_approval(content.partner_id, now)
        logger.info(f"Approved {content.content_type} content {content_id}")
        return content
