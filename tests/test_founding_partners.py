import pytest

from marketplace.database import RecordNotFound
from marketplace.founding_partners import FoundingPartnerService, week_index
from marketplace.launch import LaunchTracker
from marketplace.partners import PartnerService

DAY = 86400


@pytest.fixture
def founding(db):
    return FoundingPartnerService(db)


@pytest.fixture
def partners(db):
    return PartnerService(db)


@pytest.fixture
def partner_id(partners):
    return partners.register_partner("Coastal Realty", "user-1")


def test_week_index(now):
    assert week_index(now, now) == 0
    assert week_index(now, now + 7 * DAY - 1) == 0
    assert week_index(now, now + 14 * DAY) == 2
    assert week_index(now, now - DAY) == 0


def test_enroll(founding, partner_id, now):
    result = founding.enroll(partner_id, now=now)

    assert result.success is True
    status = founding.get_status(partner_id)
    assert status.benefits_end_date == now + 90 * DAY
    assert status.weekly_content_delivered == []
    assert founding.is_founding_partner(partner_id) is True
    assert founding.are_benefits_active(partner_id, now=now + 90 * DAY) is True
    assert founding.are_benefits_active(partner_id, now=now + 91 * DAY) is False
    assert founding.get_benefits()["fast_track_review"] is True

    assert founding.enroll(partner_id, now=now).success is False
    with pytest.raises(RecordNotFound):
        founding.enroll("missing")


def test_enrollment_closes_when_full(founding, partners, now):
    for i in range(15):
        assert founding.enroll(partners.register_partner(f"Partner {i}", f"user-{i}"), now=now).success

    late = founding.enroll(partners.register_partner("Late Arrival", "user-late"), now=now)

    assert founding.is_enrollment_open() is False
    assert late.success is False
    assert "closed" in late.message


def test_commitment_tracking(founding, partner_id, now):
    founding.enroll(partner_id, now=now)
    for _ in range(5):
        founding.track_pre_launch_content(partner_id)
    assert founding.track_weekly_content(partner_id, 2) == 1
    assert founding.track_weekly_content(partner_id, 2) == 2
    assert founding.get_status(partner_id).weekly_content_delivered == [0, 0, 2]

    on_track = founding.check_content_commitment(partner_id, now=now + 7 * DAY)
    assert on_track.pre_launch_met is True
    assert on_track.weekly_required == 2
    assert on_track.is_compliant is True

    behind = founding.check_content_commitment(partner_id, now=now + 21 * DAY)
    assert behind.weekly_met is False
    assert behind.shortfalls() == ["Weekly commitment not met: 2/6"]
    assert behind.warnings_remaining == 2

    with pytest.raises(ValueError):
        founding.track_weekly_content(partner_id, -1)
    with pytest.raises(RecordNotFound):
        founding.check_content_commitment("missing")


def test_second_warning_revokes(founding, partner_id, now):
    founding.enroll(partner_id, now=now)

    assert founding.check_all_commitments(now=now) == {"checked": 1, "warned": 1, "revoked": 0}
    assert founding.get_status(partner_id).status == "warning"
    assert founding.is_founding_partner(partner_id) is True

    assert founding.check_all_commitments(now=now) == {"checked": 1, "warned": 1, "revoked": 1}
    assert founding.is_founding_partner(partner_id) is False
    assert founding.get_active_founding_partners() == []
    assert founding.check_all_commitments(now=now)["checked"] == 0


def test_compliant_partner_not_warned(founding, partner_id, now):
    founding.enroll(partner_id, now=now)
    for _ in range(5):
        founding.track_pre_launch_content(partner_id)

    assert founding.check_all_commitments(now=now + DAY)["warned"] == 0

    founding.revoke(partner_id)
    assert founding.are_benefits_active(partner_id, now=now) is False


def test_approvals_count_towards_commitment(db, partner_id, add_content, now):
    tracker = LaunchTracker(db)
    founding = FoundingPartnerService(db, tracker)
    service = PartnerService(db, launch_tracker=tracker, founding_partners=founding)
    founding.enroll(partner_id, now=now)

    tracker.transition_phase("pre_launch")
    service.approve_content(add_content(partner_id=partner_id, is_active=False), now=now)
    assert founding.get_status(partner_id).pre_launch_content_delivered == 1

    tracker.transition_phase("launch_period", force=True)
    service.approve_content(add_content(partner_id=partner_id, is_active=False), now=now + 8 * DAY)
    status = founding.get_status(partner_id)
    assert status.pre_launch_content_delivered == 1
    assert status.weekly_content_delivered == [0, 1]

    other_partner = service.register_partner("Inland Estates", "user-2")
    assert founding.track_content_approval(other_partner, now=now) is False
