"""
Subscription billing: plans, trials, upgrades, downgrades and entitlements.

Plan prices are integer cents. Every status change is checked against the
subscription state machine and recorded as a SubscriptionEvent.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from config.settings import DAY
from marketplace.database import (
    BoostCredit,
    Database,
    RecordNotFound,
    SubscriptionEvent,
    SubscriptionPlan,
    UserSubscription,
)
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)

BILLING_PERIOD = 30 * DAY

VALID_STATE_TRANSITIONS: Dict[str, tuple] = {
    "trial_active": ("trial_expired", "active_paid", "cancelled"),
    "trial_expired": ("active_paid", "downgraded", "cancelled"),
    "active_paid": ("active_paid", "past_due", "cancelled", "downgraded"),
    "past_due": ("active_paid", "cancelled", "grace_period"),
    "cancelled": (),
    "downgraded": ("active_paid", "cancelled"),
    "grace_period": ("active_paid", "cancelled"),
}

INITIAL_STATUS = "trial_active"

PLAN_CATEGORIES = ("agent", "agency", "developer")


class InvalidTransition(ValueError):
    """Raised when a subscription status change is not allowed."""


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in VALID_STATE_TRANSITIONS.get(current_status, ())


class SubscriptionService:
    """Manages user subscriptions and plan entitlements."""

    def __init__(self, database: Database):
        self.database = database

    # Plans
    def get_all_plans(self, category: Optional[str] = None) -> List[SubscriptionPlan]:
        with self.database.get_session() as session:
            query = session.query(SubscriptionPlan).filter(SubscriptionPlan.is_active.is_(True))
            if category:
                query = query.filter(SubscriptionPlan.category == category)
            return query.order_by(SubscriptionPlan.sort_order.asc(), SubscriptionPlan.id.asc()).all()

    def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        with self.database.get_session() as session:
            return session.query(SubscriptionPlan).filter_by(plan_id=plan_id).first()

    def get_trial_plan(self, category: str) -> Optional[SubscriptionPlan]:
        with self.database.get_session() as session:
            return (
                session.query(SubscriptionPlan)
                .filter(
                    SubscriptionPlan.category == category,
                    SubscriptionPlan.is_trial_plan.is_(True),
                    SubscriptionPlan.is_active.is_(True),
                )
                .order_by(SubscriptionPlan.sort_order.asc())
                .first()
            )

    def save_plan(self, plan_id: str, **fields) -> int:
        """Create or update a plan by plan_id. Returns its row id."""
        category = fields.get("category")
        if category is not None and category not in PLAN_CATEGORIES:
            raise ValueError(f"Unknown plan category: {category}")
        with self.database.get_session() as session:
            plan = session.query(SubscriptionPlan).filter_by(plan_id=plan_id).first()
            if plan:
                for key, value in fields.items():
                    setattr(plan, key, value)
            else:
                plan = SubscriptionPlan(plan_id=plan_id, **fields)
                session.add(plan)
            session.commit()
            return plan.id

    # Subscriptions
    def get_user_subscription(self, user_id: int) -> Optional[UserSubscription]:
        with self.database.get_session() as session:
            return session.query(UserSubscription).filter_by(user_id=user_id).first()

    def get_events(self, user_id: int) -> List[SubscriptionEvent]:
        with self.database.get_session() as session:
            return (
                session.query(SubscriptionEvent)
                .filter_by(user_id=user_id)
                .order_by(SubscriptionEvent.id.asc())
                .all()
            )

    def _require_subscription(self, session: Session, user_id: int) -> UserSubscription:
        subscription = session.query(UserSubscription).filter_by(user_id=user_id).first()
        if not subscription:
            raise RecordNotFound(f"No subscription for user {user_id}")
        return subscription

    def _require_plan(self, session: Session, plan_id: str) -> SubscriptionPlan:
        plan = session.query(SubscriptionPlan).filter_by(plan_id=plan_id).first()
        if not plan:
            raise RecordNotFound(f"Plan {plan_id} not found")
        return plan

    @staticmethod
    def _log_event(session: Session, subscription: UserSubscription, event_type: str, data: Optional[Dict] = None):
        session.add(
            SubscriptionEvent(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                event_type=event_type,
                event_data=data or {},
                created_at=now_ts(),
            )
        )
        logger.info(f"Subscription event {event_type} for user {subscription.user_id}: {data or {}}")

    @staticmethod
    def _transition(subscription: UserSubscription, new_status: str) -> None:
        if not can_transition(subscription.status, new_status):
            raise InvalidTransition(f"Cannot move subscription from {subscription.status} to {new_status}")
        subscription.status = new_status
        subscription.updated_at = now_ts()

    @staticmethod
    def _set_boost_credits(session: Session, user_id: int, credits: int, reset_used: bool) -> None:
        ts = now_ts()
        record = session.get(BoostCredit, user_id)
        if record:
            record.total_credits = credits
            if reset_used:
                record.used_credits = 0
            record.reset_at = ts + BILLING_PERIOD
            record.updated_at = ts
        else:
            session.add(
                BoostCredit(
                    user_id=user_id,
                    total_credits=credits,
                    used_credits=0,
                    reset_at=ts + BILLING_PERIOD,
                    updated_at=ts,
                )
            )

    def start_trial(self, user_id: int, category: str, now: Optional[int] = None) -> UserSubscription:
        """
        Start the category's trial for a user.

        A user gets one trial ever. New subscribers enter the state machine at
        trial_active; an existing subscription must be allowed to move there.

        Args:
            user_id: User starting the trial
            category: Plan category (agent, agency, developer)
            now: Unix start time

        Returns:
            The trial subscription
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            subscription = session.query(UserSubscription).filter_by(user_id=user_id).first()
            if subscription and subscription.trial_used:
                raise ValueError("Trial already used")

            trial_plan = (
                session.query(SubscriptionPlan)
                .filter(
                    SubscriptionPlan.category == category,
                    SubscriptionPlan.is_trial_plan.is_(True),
                    SubscriptionPlan.is_active.is_(True),
                )
                .order_by(SubscriptionPlan.sort_order.asc())
                .first()
            )
            if not trial_plan:
                raise ValueError(f"No trial plan available for category {category}")

            trial_ends_at = now + (trial_plan.trial_days or 0) * DAY
            if subscription:
                self._transition(subscription, INITIAL_STATUS)
            else:
                subscription = UserSubscription(user_id=user_id, status=INITIAL_STATUS, created_at=now)
                session.add(subscription)

            subscription.plan_id = trial_plan.plan_id
            subscription.trial_started_at = now
            subscription.trial_ends_at = trial_ends_at
            subscription.trial_used = True
            subscription.current_period_end = trial_ends_at
            subscription.updated_at = now
            session.flush()

            self._log_event(
                session,
                subscription,
                "trial_started",
                {"plan_id": trial_plan.plan_id, "trial_ends_at": trial_ends_at},
            )

            credits = (trial_plan.permissions or {}).get("boost_credits") or 0
            if credits > 0:
                self._set_boost_credits(session, user_id, credits, reset_used=True)

            session.commit()
            return subscription

    def expire_trial(self, user_id: int) -> UserSubscription:
        """Move a trial to its plan's downgrade target."""
        with self.database.get_session() as session:
            subscription = self._require_subscription(session, user_id)
            plan = self._require_plan(session, subscription.plan_id)
            if not plan.downgrade_to_plan_id:
                raise ValueError(f"Plan {plan.plan_id} has no downgrade plan defined")

            self._transition(subscription, "trial_expired")
            previous = subscription.plan_id
            subscription.previous_plan_id = previous
            subscription.plan_id = plan.downgrade_to_plan_id
            self._log_event(
                session,
                subscription,
                "trial_expired",
                {"previous_plan": previous, "new_plan": plan.downgrade_to_plan_id},
            )
            session.commit()
            return subscription

    def expire_due_trials(self, now: Optional[int] = None) -> int:
        """
        Expire every active trial whose end date has passed.

        Returns:
            Number of trials expired
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            due = [
                row.user_id
                for row in session.query(UserSubscription)
                .filter(UserSubscription.status == "trial_active", UserSubscription.trial_ends_at <= now)
                .all()
            ]
        for user_id in due:
            self.expire_trial(user_id)
        return len(due)

    def upgrade(self, user_id: int, plan_id: str, now: Optional[int] = None) -> UserSubscription:
        """Move a user onto a paid plan immediately, clearing any scheduled downgrade."""
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            subscription = self._require_subscription(session, user_id)
            new_plan = self._require_plan(session, plan_id)

            self._transition(subscription, "active_paid")
            previous = subscription.plan_id
            subscription.previous_plan_id = previous
            subscription.plan_id = new_plan.plan_id
            subscription.current_period_end = now + BILLING_PERIOD
            subscription.downgrade_scheduled = False
            subscription.downgrade_to_plan_id = None
            subscription.downgrade_effective_date = None
            self._log_event(session, subscription, "subscription_upgraded", {"from_plan": previous, "to_plan": plan_id})

            credits = (new_plan.permissions or {}).get("boost_credits") or 0
            if credits:
                self._set_boost_credits(session, user_id, credits, reset_used=False)

            session.commit()
            return subscription

    def downgrade(
        self,
        user_id: int,
        plan_id: str,
        immediate: bool = False,
        now: Optional[int] = None,
    ) -> UserSubscription:
        """
        Downgrade a user to a cheaper plan.

        Args:
            user_id: Subscriber
            plan_id: Target plan
            immediate: Apply now instead of at the end of the billing period
            now: Unix time used when the subscription has no period end

        Returns:
            The updated subscription
        """
        now = now if now is not None else now_ts()
        with self.database.get_session() as session:
            subscription = self._require_subscription(session, user_id)
            self._require_plan(session, plan_id)

            if immediate:
                self._apply_downgrade(session, subscription, plan_id)
            else:
                if not can_transition(subscription.status, "downgraded"):
                    raise InvalidTransition(f"Cannot schedule a downgrade from {subscription.status}")
                effective = subscription.current_period_end or now
                subscription.downgrade_scheduled = True
                subscription.downgrade_to_plan_id = plan_id
                subscription.downgrade_effective_date = effective
                subscription.updated_at = now
                self._log_event(
                    session,
                    subscription,
                    "downgrade_scheduled",
                    {"to_plan": plan_id, "effective_date": effective},
                )
            session.commit()
            return subscription

    def _apply_downgrade(self, session: Session, subscription: UserSubscription, plan_id: str) -> None:
        self._transition(subscription, "downgraded")
        previous = subscription.plan_id
        subscription.previous_plan_id = previous
        subscription.plan_id = plan_id
        subscription.downgrade_scheduled = False
        subscription.downgrade_to_plan_id = None
        subscription.downgrade_effective_date = None
        self._log_event(session, subscription, "subscription_downgraded", {"from_plan": previous, "to_plan": plan_id})

    def apply_scheduled_downgrades(self, now: Optional[int] = None) -> int:
        """
        Apply downgrades whose effective date has passed.

        Subscriptions whose status no longer allows a downgrade keep their
        schedule and are skipped.

        Returns:
            Number of downgrades applied
        """
        now = now if now is not None else now_ts()
        applied = 0
        with self.database.get_session() as session:
            due = (
                session.query(UserSubscription)
                .filter(
                    UserSubscription.downgrade_scheduled.is_(True),
                    UserSubscription.downgrade_effective_date <= now,
                )
                .all()
            )
            for subscription in due:
                if not can_transition(subscription.status, "downgraded"):
                    logger.warning(
                        f"Skipping scheduled downgrade for user {subscription.user_id}: status {subscription.status}"
                    )
                    continue
                self._apply_downgrade(session, subscription, subscription.downgrade_to_plan_id)
                applied += 1
            session.commit()
        return applied

    def _simple_transition(self, user_id: int, new_status: str, event_type: str) -> UserSubscription:
        with self.database.get_session() as session:
            subscription = self._require_subscription(session, user_id)
            previous = subscription.status
            self._transition(subscription, new_status)
            if new_status == "cancelled":
                subscription.cancelled_at = subscription.updated_at
                subscription.downgrade_scheduled = False
            self._log_event(session, subscription, event_type, {"previous_status": previous})
            session.commit()
            return subscription

    def cancel(self, user_id: int) -> UserSubscription:
        return self._simple_transition(user_id, "cancelled", "subscription_cancelled")

    def mark_past_due(self, user_id: int) -> UserSubscription:
        return self._simple_transition(user_id, "past_due", "payment_failed")

    def start_grace_period(self, user_id: int) -> UserSubscription:
        return self._simple_transition(user_id, "grace_period", "grace_period_started")

    # Entitlements
    def _plan_for_user(self, user_id: int) -> Optional[SubscriptionPlan]:
        subscription = self.get_user_subscription(user_id)
        if not subscription or subscription.status == "cancelled":
            return None
        return self.get_plan(subscription.plan_id)

    def check_feature_access(self, user_id: int, permission: str) -> Dict:
        """Whether the user's plan grants a permission, with an upgrade hint if not."""
        plan = self._plan_for_user(user_id)
        if not plan:
            return {"has_access": False, "reason": "No active subscription", "upgrade_required": True}

        if (plan.permissions or {}).get(permission):
            return {"has_access": True}

        upgrade_plan = self.get_plan(plan.upgrade_to_plan_id) if plan.upgrade_to_plan_id else None
        return {
            "has_access": False,
            "reason": f"Feature requires {upgrade_plan.display_name if upgrade_plan else 'upgrade'}",
            "upgrade_required": True,
            "recommended_plan": upgrade_plan.plan_id if upgrade_plan else None,
        }

    def check_limit(self, user_id: int, limit_type: str, current_count: int) -> Dict:
        """Check a usage count against the plan limit. A limit of -1 means unlimited."""
        plan = self._plan_for_user(user_id)
        if not plan:
            return {
                "is_allowed": False,
                "current_count": current_count,
                "limit": 0,
                "remaining": 0,
                "is_unlimited": False,
            }

        limit = (plan.limits or {}).get(limit_type, 0)
        if limit == -1:
            return {
                "is_allowed": True,
                "current_count": current_count,
                "limit": -1,
                "remaining": -1,
                "is_unlimited": True,
            }
        return {
            "is_allowed": current_count < limit,
            "current_count": current_count,
            "limit": limit,
            "remaining": max(0, limit - current_count),
            "is_unlimited": False,
        }

    def get_upgrade_prompt(self, user_id: int, feature: str) -> Optional[Dict]:
        plan = self._plan_for_user(user_id)
        if not plan or not plan.upgrade_to_plan_id:
            return None
        upgrade_plan = self.get_plan(plan.upgrade_to_plan_id)
        if not upgrade_plan:
            return None

        price_difference = (upgrade_plan.price_zar or 0) - (plan.price_zar or 0)
        return {
            "title": f"Upgrade to {upgrade_plan.display_name}",
            "message": f"Unlock {feature} and more premium features",
            "feature_blocked": feature,
            "current_plan": plan.display_name,
            "recommended_plan": upgrade_plan.display_name,
            "price_difference": price_difference,
            "benefits": upgrade_plan.features or [],
            "cta": f"Upgrade for R{price_difference / 100:.2f}/month",
        }

    # Boost credits
    def get_boost_credits(self, user_id: int) -> Dict:
        with self.database.get_session() as session:
            record = session.get(BoostCredit, user_id)
            if not record:
                return {"total": 0, "used": 0, "remaining": 0, "reset_at": None}
            return {
                "total": record.total_credits or 0,
                "used": record.used_credits or 0,
                "remaining": max((record.total_credits or 0) - (record.used_credits or 0), 0),
                "reset_at": record.reset_at,
            }

    def use_boost_credit(self, user_id: int) -> bool:
        """Consume one boost credit. Returns False when none are left."""
        with self.database.get_session() as session:
            record = session.get(BoostCredit, user_id)
            if not record or (record.used_credits or 0) >= (record.total_credits or 0):
                return False
            record.used_credits = (record.used_credits or 0) + 1
            record.updated_at = now_ts()
            session.commit()
            return True
