"""
Moderation queue for partner content.

A partner's first submissions wait for manual review. Once the partner has
enough approved content, new submissions that pass the content rules are
approved on arrival. Flagged content always goes back to the manual queue.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from config.settings import PARTNER_TIERS, PROMOTIONAL_KEYWORDS
from marketplace.database import ContentApproval, Database, ExploreContent, ExplorePartner, RecordNotFound
from marketplace.partners import PartnerService
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = ("approved", "rejected", "revision_requested")
QUEUE_STATUSES = ("pending",) + REVIEW_DECISIONS
AUTO_REVIEWER = "auto"

MIN_TITLE_LENGTH = 10
MAX_TITLE_LENGTH = 255
MIN_DESCRIPTION_LENGTH = 20

REJECTION_GUIDANCE = (
    "Please review the content guidelines and make sure your content:\n"
    "- Provides educational value, not just promotion\n"
    "- Matches your tier's allowed content types\n"
    "- Uses only approved CTAs for your tier\n"
    "- Has complete and accurate metadata\n"
    "Would someone watch this even if they weren't buying?"
)
REVISION_GUIDANCE = "Please make the requested changes and resubmit."


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def content_rule_errors(
    tier_id: int,
    content_type: str,
    title: Optional[str],
    description: Optional[str],
    ctas: Sequence[str] = (),
) -> List[str]:
    """
    Check content against the partner tier's permissions and the metadata rules.

    Args:
        tier_id: Partner tier
        content_type: Explore content type
        title: Content title
        description: Content description
        ctas: Calls to action attached to the content

    Returns:
        Human-readable problems (empty when the content is acceptable)
    """
    tier = PARTNER_TIERS.get(tier_id)
    if not tier:
        return [f"Partner tier {tier_id} not found"]

    errors = []
    allowed_types = tier["allowed_content_types"]
    if content_type not in allowed_types:
        errors.append(
            f"Content type {content_type!r} not allowed for tier {tier['name']!r}. "
            f"Allowed types: {', '.join(allowed_types)}"
        )

    invalid_ctas = [cta for cta in ctas if cta not in tier["allowed_ctas"]]
    if invalid_ctas:
        errors.append(
            f"CTAs not allowed for tier {tier['name']!r}: {', '.join(invalid_ctas)}. "
            f"Allowed CTAs: {', '.join(tier['allowed_ctas'])}"
        )

    missing = [name for name, value in (("title", title), ("description", description)) if not value]
    if missing:
        errors.append(f"Missing required metadata fields: {', '.join(missing)}")
    if title and len(title) < MIN_TITLE_LENGTH:
        errors.append(f"Title must be at least {MIN_TITLE_LENGTH} characters long")
    if title and len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must not exceed {MAX_TITLE_LENGTH} characters")
    if description and len(description) < MIN_DESCRIPTION_LENGTH:
        errors.append(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters long")
    if description and any(keyword in description.lower() for keyword in PROMOTIONAL_KEYWORDS):
        errors.append("Content appears to be purely promotional. Please add educational value.")
    return errors


def review_feedback(decision: str, feedback: Optional[str], violation_types: Sequence[str] = ()) -> str:
    """Reviewer feedback with the violation list and the standard guidance appended."""
    parts = [feedback] if feedback else []
    if violation_types:
        parts.append(f"Violation types: {', '.join(violation_types)}")
    if decision == "rejected":
        parts.append(REJECTION_GUIDANCE)
    elif decision == "revision_requested":
        parts.append(REVISION_GUIDANCE)
    return "\n\n".join(parts)


class ContentApprovalService:
    """Submits partner content for review and records review decisions."""

    def __init__(self, database: Database, partners: Optional[PartnerService] = None):
        self.database = database
        self.partners = partners or PartnerService(database)

    def validate_content_rules(self, content_id: int, ctas: Sequence[str] = ()) -> ValidationResult:
        """Check stored content against its partner's tier and the metadata rules."""
        with self.database.get_session() as session:
            content = session.get(ExploreContent, content_id)
            if not content:
                raise RecordNotFound(f"Content {content_id} not found")
            partner = session.get(ExplorePartner, content.partner_id) if content.partner_id else None
            if not partner:
                return ValidationResult([f"Content {content_id} has no partner"])
            return ValidationResult(
                content_rule_errors(partner.tier_id, content.content_type, content.title, content.description, ctas)
            )

    def submit_for_approval(
        self,
        content_id: int,
        partner_id: str,
        ctas: Sequence[str] = (),
        now: Optional[int] = None,
    ) -> ContentApproval:
        """
        Queue partner content for review.

        Content may be resubmitted only after a reviewer asked for a revision.
        Partners eligible for auto-approval skip the queue when the content
        passes the content rules.

        Args:
            content_id: Content to review
            partner_id: Partner that owns the content
            ctas: Calls to action attached to the content
            now: Unix submission time

        Returns:
            The queue entry (already approved when auto-approved)
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            if not session.get(ExplorePartner, partner_id):
                raise RecordNotFound(f"Partner {partner_id} not found")
            content = session.get(ExploreContent, content_id)
            if not content:
                raise RecordNotFound(f"Content {content_id} not found")
            if content.partner_id != partner_id:
                raise ValueError(f"Content {content_id} does not belong to partner {partner_id}")

            entry = session.query(ContentApproval).filter_by(content_id=content_id).first()
            if entry and entry.status != "revision_requested":
                raise ValueError(f"Content {content_id} already submitted for approval ({entry.status})")

        eligible = self.partners.is_eligible_for_auto_approval(partner_id)
        errors = self.validate_content_rules(content_id, ctas).errors if eligible else []
        auto_approve = eligible and not errors

        with self.database.get_session() as session:
            if entry:
                entry = session.get(ContentApproval, entry.id)
            else:
                entry = ContentApproval(id=str(uuid.uuid4()), content_id=content_id, partner_id=partner_id)
                session.add(entry)
            entry.status = "pending"
            entry.submitted_at = now
            entry.reviewed_at = None
            entry.reviewer_id = None
            entry.feedback = "; ".join(errors) or None
            entry.auto_approval_eligible = auto_approve
            session.commit()

        if auto_approve:
            logger.info(f"Auto-approving content {content_id} from partner {partner_id}")
            return self.review_content(entry.id, "approved", AUTO_REVIEWER, now=now)

        logger.info(f"Content {content_id} from partner {partner_id} queued for manual review")
        return entry

    def review_content(
        self,
        queue_id: str,
        decision: str,
        reviewer_id: str,
        feedback: Optional[str] = None,
        violation_types: Sequence[str] = (),
        now: Optional[int] = None,
    ) -> ContentApproval:
        """
        Record a review decision on a pending entry.

        Rejections and revision requests need feedback. Approval activates the
        content and refreshes the partner's trust score.
        """
        if decision not in REVIEW_DECISIONS:
            raise ValueError(f"decision must be one of {REVIEW_DECISIONS}")
        if decision != "approved" and not feedback:
            raise ValueError("Feedback is required for rejected or revision-requested content")
        now = now if now is not None else now_ts()

        with self.database.get_session() as session:
            entry = session.get(ContentApproval, queue_id)
            if not entry:
                raise RecordNotFound(f"Queue item {queue_id} not found")
            if entry.status != "pending":
                raise ValueError(f"Queue item {queue_id} is already {entry.status}")

            entry.status = decision
            entry.reviewed_at = now
            entry.reviewer_id = reviewer_id
            entry.feedback = review_feedback(decision, feedback, violation_types) or None
            session.commit()

        if decision == "approved":
            self.partners.approve_content(entry.content_id, now=now)
            self.partners.calculate_trust_score(entry.partner_id)
        logger.info(f"Content {entry.content_id} {decision} by {reviewer_id}")
        return entry

    def flag_content(self, content_id: int, reason: str, reporter_id: str, now: Optional[int] = None) -> ContentApproval:
        """Send content back to manual review, whatever the partner's standing."""
        now = now if now is not None else now_ts()
        feedback = f"Flagged by user {reporter_id}: {reason}"
        with self.database.get_session() as session:
            entry = session.query(ContentApproval).filter_by(content_id=content_id).first()
            if not entry:
                content = session.get(ExploreContent, content_id)
                if not content:
                    raise RecordNotFound(f"Content {content_id} not found")
                if not content.partner_id:
                    raise ValueError(f"Content {content_id} has no partner")
                entry = ContentApproval(
                    id=str(uuid.uuid4()),
                    content_id=content_id,
                    partner_id=content.partner_id,
                    submitted_at=now,
                )
                session.add(entry)
            entry.status = "pending"
            entry.auto_approval_eligible = False
            entry.feedback = feedback
            session.commit()

        logger.warning(f"Content {content_id} flagged for review: {reason}")
        return entry

    def get_approval_queue(
        self,
        status: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ContentApproval]:
        """Queue entries, newest submission first."""
        if status is not None and status not in QUEUE_STATUSES:
            raise ValueError(f"status must be one of {QUEUE_STATUSES}")
        if limit < 1 or offset < 0:
            raise ValueError("limit must be positive and offset non-negative")
        with self.database.get_session() as session:
            query = session.query(ContentApproval)
            if status:
                query = query.filter(ContentApproval.status == status)
            if partner_id:
                query = query.filter(ContentApproval.partner_id == partner_id)
            return (
                query.order_by(ContentApproval.submitted_at.desc(), ContentApproval.id.asc())
                .offset(offset)
                .limit(limit)
                .all()
            )

    def get_pending_reviews(self, limit: int = 50) -> List[ContentApproval]:
        return self.get_approval_queue(status="pending", limit=limit)

    def get_partner_review_stats(self, partner_id: str) -> Dict:
        with self.database.get_session() as session:
            statuses = [
                row.status
                for row in session.query(ContentApproval.status).filter(ContentApproval.partner_id == partner_id).all()
            ]
        total = len(statuses)
        approved = statuses.count("approved")
        return {
            "total": total,
            "approved": approved,
            "rejected": statuses.count("rejected"),
            "pending": statuses.count("pending"),
            "revision_requested": statuses.count("revision_requested"),
            "approval_rate": round(approved / total * 100, 2) if total else 0.0,
        }
