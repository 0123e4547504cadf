import pytest

from marketplace.content_approval import ContentApprovalService, content_rule_errors
from marketplace.database import ExploreContent, RecordNotFound
from marketplace.partners import PartnerService

DAY = 86400
DESCRIPTION = "A walk through the kitchen, the garden and the quiet street outside."


@pytest.fixture
def partners(db):
    return PartnerService(db)


@pytest.fixture
def approvals(db, partners):
    return ContentApprovalService(db, partners=partners)


@pytest.fixture
def partner_id(partners):
    return partners.register_partner("Coastal Realty", "user-1")


@pytest.fixture
def submit(approvals, add_content, partner_id, now):
    """Create inactive partner content and submit it."""

    def _submit(**overrides):
        fields = dict(partner_id=partner_id, description=DESCRIPTION, is_active=False)
        fields.update(overrides)
        return approvals.submit_for_approval(add_content(**fields), partner_id, now=now)

    return _submit


def test_first_submissions_wait_for_review(approvals, partners, submit, partner_id):
    entry = submit()

    assert entry.status == "pending"
    assert entry.auto_approval_eligible is False
    assert [e.id for e in approvals.get_pending_reviews()] == [entry.id]
    assert partners.get_partner(partner_id).approved_content_count == 0


def test_auto_approval_after_three_approvals(db, approvals, partners, submit, partner_id, now):
    for _ in range(3):
        entry = submit()
        approvals.review_content(entry.id, "approved", "reviewer-1", now=now)

    auto = submit()

    assert auto.status == "approved"
    assert auto.auto_approval_eligible is True
    assert auto.reviewer_id == "auto"
    assert partners.get_partner(partner_id).approved_content_count == 4
    assert approvals.get_pending_reviews() == []
    with db.get_session() as session:
        assert session.get(ExploreContent, auto.content_id).is_active is True

    held = submit(description="Buy now!")
    assert held.status == "pending"
    assert held.auto_approval_eligible is False
    assert "promotional" in held.feedback


def test_review_decisions(approvals, submit, now):
    entry = submit()

    with pytest.raises(ValueError):
        approvals.review_content(entry.id, "rejected", "reviewer-1")
    with pytest.raises(ValueError):
        approvals.review_content(entry.id, "archived", "reviewer-1", feedback="No")

    rejected = approvals.review_content(
        entry.id,
        "rejected",
        "reviewer-1",
        feedback="Mostly a sales pitch",
        violation_types=["promotional"],
        now=now + DAY,
    )

    assert rejected.status == "rejected"
    assert rejected.reviewed_at == now + DAY
    assert rejected.feedback.startswith("Mostly a sales pitch\n\nViolation types: promotional")
    assert "content guidelines" in rejected.feedback
    with pytest.raises(ValueError):
        approvals.review_content(entry.id, "approved", "reviewer-2")
    with pytest.raises(RecordNotFound):
        approvals.review_content("missing", "approved", "reviewer-1")


def test_resubmission_after_revision(approvals, add_content, partner_id, now):
    content_id = add_content(partner_id=partner_id, description=DESCRIPTION, is_active=False)
    entry = approvals.submit_for_approval(content_id, partner_id, now=now)
    with pytest.raises(ValueError):
        approvals.submit_for_approval(content_id, partner_id, now=now)

    revised = approvals.review_content(entry.id, "revision_requested", "reviewer-1", feedback="Add a voice-over")
    assert revised.feedback.endswith("resubmit.")

    again = approvals.submit_for_approval(content_id, partner_id, now=now + DAY)
    assert again.id == entry.id
    assert again.status == "pending"
    assert again.submitted_at == now + DAY
    assert again.reviewer_id is None


def test_submit_validation(approvals, partners, add_content, partner_id):
    other_partner = partners.register_partner("Inland Estates", "user-2")

    with pytest.raises(RecordNotFound):
        approvals.submit_for_approval(add_content(partner_id=partner_id), "missing")
    with pytest.raises(RecordNotFound):
        approvals.submit_for_approval(9999, partner_id)
    with pytest.raises(ValueError):
        approvals.submit_for_approval(add_content(partner_id=other_partner), partner_id)


def test_flagged_content_returns_to_manual_review(approvals, partners, submit, add_content, partner_id, now):
    entry = submit()
    approved = approvals.review_content(entry.id, "approved", "reviewer-1", now=now)

    flagged = approvals.flag_content(approved.content_id, "Misleading price", "user-9")

    assert flagged.id == entry.id
    assert flagged.status == "pending"
    assert flagged.auto_approval_eligible is False
    assert flagged.feedback == "Flagged by user user-9: Misleading price"

    approvals.review_content(entry.id, "approved", "reviewer-2", now=now + DAY)
    assert partners.get_partner(partner_id).approved_content_count == 1

    unqueued = approvals.flag_content(add_content(partner_id=partner_id), "Spam", "user-9")
    assert unqueued.partner_id == partner_id
    assert unqueued.status == "pending"
    with pytest.raises(ValueError):
        approvals.flag_content(add_content(), "Spam", "user-9")
    with pytest.raises(RecordNotFound):
        approvals.flag_content(9999, "Spam", "user-9")


def test_queue_filters_and_stats(approvals, submit, partner_id, now):
    entries = [submit() for _ in range(4)]
    approvals.review_content(entries[0].id, "approved", "reviewer-1", now=now)
    approvals.review_content(entries[1].id, "rejected", "reviewer-1", feedback="Off topic", now=now)
    approvals.review_content(entries[2].id, "revision_requested", "reviewer-1", feedback="Shorter", now=now)

    assert len(approvals.get_approval_queue(partner_id=partner_id)) == 4
    assert [e.id for e in approvals.get_approval_queue(status="rejected")] == [entries[1].id]
    assert len(approvals.get_approval_queue(limit=2, offset=3)) == 1
    with pytest.raises(ValueError):
        approvals.get_approval_queue(status="archived")

    assert approvals.get_partner_review_stats(partner_id) == {
        "total": 4,
        "approved": 1,
        "rejected": 1,
        "pending": 1,
        "revision_requested": 1,
        "approval_rate": 25.0,
    }
    assert approvals.get_partner_review_stats("missing")["approval_rate"] == 0.0


def test_content_rules():
    assert content_rule_errors(1, "property_tour", "Sea Point sunset tour", DESCRIPTION, ["book_viewing"]) == []

    errors = content_rule_errors(2, "property_tour", "Short", "Act fast, hurry", ["view_listing"])
    assert len(errors) == 5
    assert errors[0].startswith("Content type 'property_tour' not allowed for tier 'Home Service Provider'")

    assert content_rule_errors(99, "property_tour", "Sea Point sunset tour", DESCRIPTION) == [
        "Partner tier 99 not found"
    ]
    assert content_rule_errors(1, "property_tour", "Sea Point sunset tour", None) == [
        "Missing required metadata fields: description"
    ]


def test_validate_stored_content(approvals, add_content, partner_id):
    content_id = add_content(partner_id=partner_id, description=DESCRIPTION)

    assert approvals.validate_content_rules(content_id).is_valid
    assert not approvals.validate_content_rules(content_id, ctas=["pre_qualify"]).is_valid

    orphan = add_content(description=DESCRIPTION)
    assert approvals.validate_content_rules(orphan).errors == [f"Content {orphan} has no partner"]
    with pytest.raises(RecordNotFound):
        approvals.validate_content_rules(9999)
