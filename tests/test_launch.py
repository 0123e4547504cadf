import pytest

from marketplace.database import RecordNotFound
from marketplace.launch import LaunchTracker


@pytest.fixture
def tracker(db):
    return LaunchTracker(db)


def _fill_quotas(tracker):
    for quota in tracker.get_content_quotas():
        tracker.update_content_quota(quota.content_type, quota.required_count)


def test_phase_configuration():
    config = LaunchTracker.get_phase_configuration("ramp_up")
    assert config == {
        "phase": "ramp_up",
        "primary_content_ratio": 0.70,
        "algorithm_weight": 0.50,
        "editorial_weight": 0.50,
    }
    with pytest.raises(ValueError):
        LaunchTracker.get_phase_configuration("beta")


def test_first_transition(tracker):
    assert tracker.get_current_phase() is None

    result = tracker.transition_phase("pre_launch")

    assert result.success is True
    assert result.previous_phase == "none"
    phase = tracker.get_current_phase()
    assert phase.phase == "pre_launch"
    assert phase.editorial_weight == 1.0
    assert phase.algorithm_weight == 0.0


def test_leaving_pre_launch_requires_readiness(tracker):
    tracker.seed_default_quotas()
    tracker.transition_phase("pre_launch")

    blocked = tracker.transition_phase("launch_period")

    assert blocked.success is False
    assert "property_tour: 0/60" in blocked.message
    assert tracker.get_current_phase().phase == "pre_launch"

    _fill_quotas(tracker)
    allowed = tracker.transition_phase("launch_period")
    assert allowed.success is True
    assert allowed.previous_phase == "pre_launch"
    assert tracker.get_current_phase().phase == "launch_period"


def test_forced_transition(tracker):
    tracker.transition_phase("pre_launch")
    assert tracker.transition_phase("ramp_up", force=True).success is True
    assert tracker.get_current_phase().algorithm_weight == 0.5


def test_quotas(tracker):
    assert tracker.seed_default_quotas() == 5
    assert tracker.seed_default_quotas() == 0
    assert sum(q.required_count for q in tracker.get_content_quotas()) == 200

    assert tracker.update_content_quota("expert_tip", 12) is True
    assert tracker.increment_content_quota("expert_tip") is True
    assert tracker.increment_content_quota("podcast") is False
    assert tracker.update_content_quota("podcast", 3) is False
    with pytest.raises(ValueError):
        tracker.update_content_quota("expert_tip", -1)

    counts = {q.content_type: q.current_count for q in tracker.get_content_quotas()}
    assert counts["expert_tip"] == 13


def test_launch_readiness(tracker):
    tracker.seed_default_quotas({"property_tour": 2, "expert_tip": 1})
    tracker.update_content_quota("property_tour", 2)

    readiness = tracker.check_launch_readiness()
    assert readiness.is_ready is False
    assert readiness.missing_quotas == ["expert_tip: 0/1"]

    tracker.update_content_quota("expert_tip", 1)
    readiness = tracker.check_launch_readiness()
    assert readiness.quotas_met is True
    # quotas met but still below the overall minimum
    assert readiness.is_ready is False
    assert readiness.total_content_count == 3

    tracker.update_content_quota("property_tour", 199)
    assert tracker.check_launch_readiness().is_ready is True


def test_recovery_mode_shifts_weights(tracker):
    with pytest.raises(RecordNotFound):
        tracker.trigger_recovery_mode()

    tracker.transition_phase("ramp_up")
    phase = tracker.trigger_recovery_mode()
    assert phase.editorial_weight == 0.7
    assert phase.algorithm_weight == 0.3

    for _ in range(5):
        tracker.trigger_recovery_mode()
    phase = tracker.get_current_phase()
    assert phase.editorial_weight == 1.0
    assert phase.algorithm_weight == 0.0


def test_metrics(tracker):
    assert tracker.get_launch_metrics() is None
    tracker.record_launch_metrics("2025-10-01", 65.0, 45.0, 35.0, 3.5, 80.0)
    tracker.record_launch_metrics("2025-10-02", 40.0, 45.0, 20.0, 3.5, 80.0)

    latest = tracker.get_launch_metrics()
    assert latest.metric_date == "2025-10-02"
    assert tracker.get_launch_metrics("2025-10-01").topic_engagement_rate == 65.0

    names = [m["name"] for m in tracker.underperforming_metrics(latest)]
    assert names == ["topic_engagement_rate", "save_share_rate"]
    assert tracker.underperforming_metrics(tracker.get_launch_metrics("2025-10-01")) == []


def test_check_metrics_and_recover(tracker):
    tracker.transition_phase("ecosystem_maturity")
    assert tracker.check_metrics_and_recover() is False

    tracker.record_launch_metrics("2025-10-01", 65.0, 45.0, 35.0, 3.5, 80.0)
    assert tracker.check_metrics_and_recover() is False

    tracker.record_launch_metrics("2025-10-02", 65.0, 10.0, 35.0, 3.5, 80.0)
    assert tracker.check_metrics_and_recover() is True
    assert tracker.get_current_phase().editorial_weight == 0.2
