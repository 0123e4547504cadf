"""
Launch phase tracking for the Explore partner marketplace.

Tracks the active launch phase, the content quotas needed before launch, and
the daily launch metrics used to decide when to fall back to editorial
curation (recovery mode).
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.settings import (
    DEFAULT_LAUNCH_QUOTAS,
    LAUNCH_METRIC_TARGETS,
    LAUNCH_PHASES,
    MIN_LAUNCH_CONTENT,
    RECOVERY_WEIGHT_STEP,
    UNDERPERFORMANCE_FACTOR,
)
from marketplace.database import (
    Database,
    LaunchContentQuota,
    LaunchMetric,
    LaunchPhase,
    RecordNotFound,
)
from marketplace.utils import clamp, now_ts

logger = logging.getLogger(__name__)


@dataclass
class LaunchReadiness:
    is_ready: bool
    quotas_met: bool
    quota_details: List[Dict] = field(default_factory=list)
    missing_quotas: List[str] = field(default_factory=list)
    total_content_count: int = 0
    required_content_count: int = 0


@dataclass
class PhaseTransition:
    success: bool
    previous_phase: str
    new_phase: str
    message: str


class LaunchTracker:
    """Tracks launch phases, content quotas and launch metrics."""

    def __init__(self, database: Database):
        self.database = database

    # Phases
    def get_current_phase(self) -> Optional[LaunchPhase]:
        """Get the most recently started active phase."""
        with self.database.get_session() as session:
            return (
                session.query(LaunchPhase)
                .filter_by(is_active=True)
                .order_by(LaunchPhase.start_date.desc(), LaunchPhase.created_at.desc())
                .first()
            )

    @staticmethod
    def get_phase_configuration(phase: str) -> Dict:
        """Ratios and weights for a phase."""
        if phase not in LAUNCH_PHASES:
            raise ValueError(f"Unknown phase: {phase}")
        return {"phase": phase, **LAUNCH_PHASES[phase]}

    def transition_phase(self, new_phase: str, force: bool = False) -> PhaseTransition:
        """
        Deactivate the current phase and start a new one.

        Leaving pre_launch requires launch readiness unless force is set.

        Args:
            new_phase: Phase to activate
            force: Skip the readiness check

        Returns:
            PhaseTransition describing the outcome
        """
        config = self.get_phase_configuration(new_phase)
        current = self.get_current_phase()
        previous = current.phase if current else "none"

        if current and current.phase == "pre_launch" and new_phase != "pre_launch" and not force:
            readiness = self.check_launch_readiness()
            if not readiness.is_ready:
                message = (
                    f"Launch readiness not met ({readiness.total_content_count}/"
                    f"{max(readiness.required_content_count, MIN_LAUNCH_CONTENT)} content); "
                    f"missing: {', '.join(readiness.missing_quotas) or 'total content'}"
                )
                logger.warning(message)
                return PhaseTransition(False, previous, previous, message)

        ts = now_ts()
        with self.database.get_session() as session:
            if current:
                active = session.get(LaunchPhase, current.id)
                active.is_active = False
                active.end_date = ts
            session.add(
                LaunchPhase(
                    id=str(uuid.uuid4()),
                    phase=new_phase,
                    start_date=ts,
                    primary_content_ratio=config["primary_content_ratio"],
                    algorithm_weight=config["algorithm_weight"],
                    editorial_weight=config["editorial_weight"],
                    is_active=True,
                    created_at=ts,
                )
            )
            session.commit()

        message = f"Successfully transitioned from {previous} to {new_phase}"
        logger.info(message)
        return PhaseTransition(True, previous, new_phase, message)

    def trigger_recovery_mode(self) -> LaunchPhase:
        """
        Shift the active phase towards editorial curation.

        Returns:
            The updated phase
        """
        with self.database.get_session() as session:
            phase = (
                session.query(LaunchPhase)
                .filter_by(is_active=True)
                .order_by(LaunchPhase.start_date.desc(), LaunchPhase.created_at.desc())
                .first()
            )
            if not phase:
                raise RecordNotFound("No active phase found")

            phase.editorial_weight = round(clamp(phase.editorial_weight + RECOVERY_WEIGHT_STEP, 0.0, 1.0), 2)
            phase.algorithm_weight = round(clamp(phase.algorithm_weight - RECOVERY_WEIGHT_STEP, 0.0, 1.0), 2)
            session.commit()
            logger.warning(
                f"Recovery mode activated: editorial {phase.editorial_weight}, "
                f"algorithm {phase.algorithm_weight}"
            )
            return phase

    # Content quotas
    def seed_default_quotas(self, quotas: Optional[Dict[str, int]] = None) -> int:
        """
        Create (or resize) the launch content quotas.

        Returns:
            Number of quotas created
        """
        quotas = quotas if quotas is not None else DEFAULT_LAUNCH_QUOTAS
        created = 0
        with self.database.get_session() as session:
            for content_type, required in quotas.items():
                quota = session.query(LaunchContentQuota).filter_by(content_type=content_type).first()
                if quota:
                    quota.required_count = required
                else:
                    session.add(
                        LaunchContentQuota(
                            id=str(uuid.uuid4()),
                            content_type=content_type,
                            required_count=required,
                            current_count=0,
                            last_updated=now_ts(),
                        )
                    )
                    created += 1
            session.commit()
        return created

    def get_content_quotas(self) -> List[LaunchContentQuota]:
        with self.database.get_session() as session:
            return session.query(LaunchContentQuota).order_by(LaunchContentQuota.content_type.asc()).all()

    def update_content_quota(self, content_type: str, count: int) -> bool:
        """Set the current count for a content type. Returns False if it has no quota."""
        if count < 0:
            raise ValueError("Quota count cannot be negative")
        with self.database.get_session() as session:
            quota = session.query(LaunchContentQuota).filter_by(content_type=content_type).first()
            if not quota:
                logger.debug(f"No launch quota for {content_type}")
                return False
            quota.current_count = count
            quota.last_updated = now_ts()
            session.commit()
            return True

    def increment_content_quota(self, content_type: str) -> bool:
        """Add one to a content type's count. Returns False if it has no quota."""
        with self.database.get_session() as session:
            quota = session.query(LaunchContentQuota).filter_by(content_type=content_type).first()
            if not quota:
                logger.debug(f"No launch quota for {content_type}")
                return False
            quota.current_count = (quota.current_count or 0) + 1
            quota.last_updated = now_ts()
            session.commit()
            return True

    def check_launch_readiness(self) -> LaunchReadiness:
        """Check every quota is met and enough content exists overall."""
        details = [
            {
                "content_type": q.content_type,
                "required": q.required_count,
                "current": q.current_count or 0,
                "met": (q.current_count or 0) >= q.required_count,
            }
            for q in self.get_content_quotas()
        ]
        missing = [f"{d['content_type']}: {d['current']}/{d['required']}" for d in details if not d["met"]]
        total = sum(d["current"] for d in details)
        required = sum(d["required"] for d in details)
        quotas_met = not missing

        return LaunchReadiness(
            is_ready=quotas_met and total >= MIN_LAUNCH_CONTENT,
            quotas_met=quotas_met,
            quota_details=details,
            missing_quotas=missing,
            total_content_count=total,
            required_content_count=required,
        )

    # Metrics
    def record_launch_metrics(
        self,
        metric_date: str,
        topic_engagement_rate: float,
        partner_content_watch_rate: float,
        save_share_rate: float,
        weekly_visits_per_user: float,
        algorithm_confidence_score: float,
    ) -> str:
        """Store a day's launch metrics. Returns the row id."""
        metric_id = str(uuid.uuid4())
        with self.database.get_session() as session:
            session.add(
                LaunchMetric(
                    id=metric_id,
                    metric_date=metric_date,
                    topic_engagement_rate=topic_engagement_rate,
                    partner_content_watch_rate=partner_content_watch_rate,
                    save_share_rate=save_share_rate,
                    weekly_visits_per_user=weekly_visits_per_user,
                    algorithm_confidence_score=algorithm_confidence_score,
                    created_at=now_ts(),
                )
            )
            session.commit()
        logger.debug(f"Recorded launch metrics for {metric_date}")
        return metric_id

    def get_launch_metrics(self, metric_date: Optional[str] = None) -> Optional[LaunchMetric]:
        """Metrics for a date, or the latest recorded."""
        with self.database.get_session() as session:
            query = session.query(LaunchMetric)
            if metric_date:
                return query.filter_by(metric_date=metric_date).order_by(LaunchMetric.created_at.desc()).first()
            return query.order_by(LaunchMetric.metric_date.desc(), LaunchMetric.created_at.desc()).first()

    def underperforming_metrics(self, metrics: LaunchMetric) -> List[Dict]:
        """Metrics more than 20% below target."""
        return [
            {"name": name, "value": getattr(metrics, name) or 0.0, "target": target}
            for name, target in LAUNCH_METRIC_TARGETS.items()
            if (getattr(metrics, name) or 0.0) < target * UNDERPERFORMANCE_FACTOR
        ]

    def check_metrics_and_recover(self) -> bool:
        """
        Trigger recovery mode if the latest metrics underperform.

        Returns:
            True if recovery mode was triggered
        """
        metrics = self.get_launch_metrics()
        if not metrics:
            return False

        underperforming = self.underperforming_metrics(metrics)
        if not underperforming:
            return False

        logger.warning(f"Metrics underperforming: {underperforming}")
        self.trigger_recovery_mode()
        return True
