import pytest

from marketplace.database import RecordNotFound
from marketplace.launch import LaunchTracker
from marketplace.partners import PartnerService
from marketplace.quality import ContentMetadata, QualityScorer


@pytest.fixture
def partners(db):
    return PartnerService(db)


def test_register_partner(partners):
    partner_id = partners.register_partner("  Karoo Developments ", "user-1", tier_id=2)

    partner = partners.get_partner(partner_id)
    assert partner.company_name == "Karoo Developments"
    assert partner.verification_status == "pending"
    assert partner.trust_score == 50.0
    assert partners.get_partner_by_user("user-1").id == partner_id


def test_register_partner_validation(partners):
    with pytest.raises(ValueError):
        partners.register_partner("   ", "user-1")
    partners.register_partner("First", "user-1")
    with pytest.raises(ValueError):
        partners.register_partner("Second", "user-1")


def test_trust_score_from_verification(partners):
    partner_id = partners.register_partner("Garden Route Homes", "user-2")

    assert partners.calculate_trust_score(partner_id) == 50.0
    assert partners.verify_partner(partner_id) == 65.0
    assert partners.get_partner(partner_id).verification_status == "verified"
    assert partners.reject_partner(partner_id) == 35.0
    assert partners.get_trust_scores([partner_id, None]) == {partner_id: 35.0}


def test_trust_score_uses_content_quality(db, partners, add_content):
    partner_id = partners.register_partner("Bay Property Films", "user-3")
    content_id = add_content(partner_id=partner_id)
    QualityScorer(db).calculate_initial_score(content_id, ContentMetadata())

    # 15 pending + 32.5% of 30 + 20 baseline
    assert partners.calculate_trust_score(partner_id) == 44.75


def test_unknown_partner(partners):
    with pytest.raises(RecordNotFound):
        partners.verify_partner("missing")
    with pytest.raises(RecordNotFound):
        partners.calculate_trust_score("missing")


def test_approve_content_counts_towards_quota(db, partners, add_content):
    tracker = LaunchTracker(db)
    tracker.seed_default_quotas({"property_tour": 2})
    service = PartnerService(db, launch_tracker=tracker)
    partner_id = service.register_partner("Highveld Tours", "user-4")
    content_id = add_content(partner_id=partner_id, is_active=False)

    approved = service.approve_content(content_id)

    assert approved.is_active is True
    assert service.get_partner(partner_id).approved_content_count == 1
    assert tracker.get_content_quotas()[0].current_count == 1

    with pytest.raises(RecordNotFound):
        service.approve_content(9999)


def test_approving_twice_counts_once(db, partners, add_content, now):
    tracker = LaunchTracker(db)
    tracker.seed_default_quotas({"property_tour": 5})
    service = PartnerService(db, launch_tracker=tracker)
    partner_id = service.register_partner("Winelands Video", "user-5")
    content_id = add_content(partner_id=partner_id, is_active=False)

    first = service.approve_content(content_id, now=now)
    second = service.approve_content(content_id, now=now + 60)

    assert first.approved_at == now
    assert second.approved_at == now
    assert service.get_partner(partner_id).approved_content_count == 1
    assert tracker.get_content_quotas()[0].current_count == 1


def test_auto_approval_eligibility(partners, add_content):
    partner_id = partners.register_partner("Lowveld Lodges", "user-6")

    for _ in range(3):
        assert partners.is_eligible_for_auto_approval(partner_id) is False
        partners.approve_content(add_content(partner_id=partner_id, is_active=False))

    assert partners.is_eligible_for_auto_approval(partner_id) is True
    assert partners.is_eligible_for_auto_approval("missing") is False
