"""
Founding partner programme.

The first partners to enrol get a featured-tier window, a badge and a faster
review. In return they deliver a minimum amount of content before launch and a
steady weekly amount afterwards; missing the commitment earns warnings, and
the second warning revokes the status.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from config.settings import (
    DAY,
    FOUNDING_BENEFIT_DAYS,
    FOUNDING_MAX_WARNINGS,
    FOUNDING_PRE_LAUNCH_COMMITMENT,
    FOUNDING_WEEKLY_COMMITMENT,
    MAX_FOUNDING_PARTNERS,
)
from marketplace.database import Database, ExplorePartner, FoundingPartner, RecordNotFound
from marketplace.launch import LaunchTracker
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)

WEEK = 7 * DAY
ENROLLED_STATUSES = ("active", "warning")

FOUNDING_BENEFITS = {
    "featured_tier_days": FOUNDING_BENEFIT_DAYS,
    "founding_badge": True,
    "co_marketing_eligible": True,
    "fast_track_review": True,  # 24h instead of 48h
}


@dataclass
class EnrollmentResult:
    success: bool
    message: str
    partner_id: Optional[str] = None


@dataclass
class CommitmentStatus:
    """Progress against the pre-launch and weekly content commitments."""

    partner_id: str
    pre_launch_required: int
    pre_launch_delivered: int
    weekly_required: int
    weekly_delivered: int
    warning_count: int

    @property
    def pre_launch_met(self) -> bool:
        return self.pre_launch_delivered >= self.pre_launch_required

    @property
    def weekly_met(self) -> bool:
        return self.weekly_delivered >= self.weekly_required

    @property
    def is_compliant(self) -> bool:
        return self.pre_launch_met and self.weekly_met

    @property
    def warnings_remaining(self) -> int:
        return max(0, FOUNDING_MAX_WARNINGS - self.warning_count)

    def shortfalls(self) -> List[str]:
        reasons = []
        if not self.pre_launch_met:
            reasons.append(f"Pre-launch commitment not met: {self.pre_launch_delivered}/{self.pre_launch_required}")
        if not self.weekly_met:
            reasons.append(f"Weekly commitment not met: {self.weekly_delivered}/{self.weekly_required}")
        return reasons


def week_index(enrollment_date: int, now: int) -> int:
    """Whole weeks elapsed since enrolment."""
    return max(0, (now - enrollment_date) // WEEK)


class FoundingPartnerService:
    """Enrolment, benefits and content commitments of founding partners."""

    def __init__(self, database: Database, launch_tracker: Optional[LaunchTracker] = None):
        self.database = database
        self.launch_tracker = launch_tracker or LaunchTracker(database)

    def count(self) -> int:
        with self.database.get_session() as session:
            return session.query(FoundingPartner).count()

    def is_enrollment_open(self) -> bool:
        """Enrolment closes for good once the programme is full, revoked seats included."""
        return self.count() < MAX_FOUNDING_PARTNERS

    def enroll(self, partner_id: str, now: Optional[int] = None) -> EnrollmentResult:
        """
        Enrol a partner in the founding partner programme.

        Args:
            partner_id: Partner to enrol
            now: Unix enrolment time

        Returns:
            EnrollmentResult; success is False when the programme is full or
            the partner is already enrolled
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            if not session.get(ExplorePartner, partner_id):
                raise RecordNotFound(f"Partner {partner_id} not found")
            if session.get(FoundingPartner, partner_id):
                return EnrollmentResult(False, "Partner is already a founding partner", partner_id)
            if session.query(FoundingPartner).count() >= MAX_FOUNDING_PARTNERS:
                return EnrollmentResult(
                    False, f"Founding partner enrolment is closed ({MAX_FOUNDING_PARTNERS} partners reached)"
                )

            session.add(
                FoundingPartner(
                    partner_id=partner_id,
                    enrollment_date=now,
                    benefits_end_date=now + FOUNDING_BENEFIT_DAYS * DAY,
                    pre_launch_content_delivered=0,
                    weekly_content_delivered=[],
                    warning_count=0,
                    status="active",
                    created_at=now,
                )
            )
            session.commit()

        logger.info(f"Enrolled founding partner {partner_id}")
        return EnrollmentResult(True, f"Enrolled with {FOUNDING_BENEFIT_DAYS} days of featured tier access", partner_id)

    def get_status(self, partner_id: str) -> Optional[FoundingPartner]:
        with self.database.get_session() as session:
            return session.get(FoundingPartner, partner_id)

    def _require(self, session, partner_id: str) -> FoundingPartner:
        record = session.get(FoundingPartner, partner_id)
        if not record:
            raise RecordNotFound(f"Partner {partner_id} is not a founding partner")
        return record

    def is_founding_partner(self, partner_id: str) -> bool:
        """Enrolled and not revoked. A partner on a warning keeps the status."""
        record = self.get_status(partner_id)
        return record is not None and record.status in ENROLLED_STATUSES

    @staticmethod
    def get_benefits() -> Dict:
        return dict(FOUNDING_BENEFITS)

    def are_benefits_active(self, partner_id: str, now: Optional[int] = None) -> bool:
        now = now if now is not None else now_ts()
        record = self.get_status(partner_id)
        if not record or record.status not in ENROLLED_STATUSES:
            return False
        return now <= record.benefits_end_date

    def check_content_commitment(self, partner_id: str, now: Optional[int] = None) -> CommitmentStatus:
        """
        Compare delivered content with the commitment so far.

        The weekly requirement grows by the weekly commitment for every full
        week since enrolment and is checked against the total delivered.
        """
        now = now if now is not None else now_ts()
        record = self.get_status(partner_id)
        if not record:
            raise RecordNotFound(f"Partner {partner_id} is not a founding partner")

        return CommitmentStatus(
            partner_id=partner_id,
            pre_launch_required=FOUNDING_PRE_LAUNCH_COMMITMENT,
            pre_launch_delivered=record.pre_launch_content_delivered or 0,
            weekly_required=week_index(record.enrollment_date, now) * FOUNDING_WEEKLY_COMMITMENT,
            weekly_delivered=sum(record.weekly_content_delivered or []),
            warning_count=record.warning_count or 0,
        )

    def track_pre_launch_content(self, partner_id: str) -> int:
        """Count one pre-launch delivery. Returns the new total."""
        with self.database.get_session() as session:
            record = self._require(session, partner_id)
            record.pre_launch_content_delivered = (record.pre_launch_content_delivered or 0) + 1
            delivered = record.pre_launch_content_delivered
            session.commit()
        return delivered

    def track_weekly_content(self, partner_id: str, week: int) -> int:
        """Count one delivery in the given week since enrolment. Returns that week's count."""
        if week < 0:
            raise ValueError("week cannot be negative")
        with self.database.get_session() as session:
            record = self._require(session, partner_id)
            weekly = list(record.weekly_content_delivered or [])
            weekly.extend([0] * (week + 1 - len(weekly)))
            weekly[week] += 1
            record.weekly_content_delivered = weekly
            session.commit()
        return weekly[week]

    def track_content_approval(self, partner_id: str, now: Optional[int] = None) -> bool:
        """
        Credit an approved item to a founding partner's commitment.

        Before launch it counts towards the pre-launch commitment, afterwards
        towards the current week.

        Returns:
            True if the partner is a founding partner and the item was counted
        """
        if not self.is_founding_partner(partner_id):
            return False
        now = now if now is not None else now_ts()

        phase = self.launch_tracker.get_current_phase()
        if phase and phase.phase == "pre_launch":
            delivered = self.track_pre_launch_content(partner_id)
            logger.info(f"Founding partner {partner_id}: {delivered} pre-launch items")
        else:
            week = week_index(self.get_status(partner_id).enrollment_date, now)
            delivered = self.track_weekly_content(partner_id, week)
            logger.info(f"Founding partner {partner_id}: {delivered} items in week {week}")
        return True

    def issue_warning(self, partner_id: str, reason: str) -> FoundingPartner:
        """Record a missed commitment. The last allowed warning revokes the status."""
        with self.database.get_session() as session:
            record = self._require(session, partner_id)
            record.warning_count = (record.warning_count or 0) + 1
            record.status = "revoked" if record.warning_count >= FOUNDING_MAX_WARNINGS else "warning"
            session.commit()

        logger.warning(
            f"Founding partner {partner_id} warned ({record.warning_count}/{FOUNDING_MAX_WARNINGS}): {reason}"
        )
        if record.status == "revoked":
            logger.warning(f"Founding partner status revoked for {partner_id}")
        return record

    def revoke(self, partner_id: str) -> None:
        with self.database.get_session() as session:
            record = self._require(session, partner_id)
            record.status = "revoked"
            session.commit()
        logger.warning(f"Founding partner status revoked for {partner_id}")

    def get_active_founding_partners(self) -> List[FoundingPartner]:
        with self.database.get_session() as session:
            return (
                session.query(FoundingPartner)
                .filter(FoundingPartner.status.in_(ENROLLED_STATUSES))
                .order_by(FoundingPartner.enrollment_date.asc())
                .all()
            )

    def check_all_commitments(self, now: Optional[int] = None) -> Dict[str, int]:
        """
        Warn every enrolled partner that is behind on its commitment.

        Returns:
            Dict with checked, warned and revoked counts
        """
        now = now if now is not None else now_ts()
        partners = self.get_active_founding_partners()
        warned = revoked = 0
        for partner in partners:
            commitment = self.check_content_commitment(partner.partner_id, now)
            if commitment.is_compliant:
                continue
            record = self.issue_warning(partner.partner_id, "; ".join(commitment.shortfalls()))
            warned += 1
            if record.status == "revoked":
                revoked += 1

        logger.info(f"Checked {len(partners)} founding partners: {warned} warned, {revoked} revoked")
        return {"checked": len(partners), "warned": warned, "revoked": revoked}
