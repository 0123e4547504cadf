import pytest

from marketplace.boosts import BoostCampaignService
from marketplace.explore_feed import ExploreFeedService, interleave_primary
from marketplace.launch import LaunchTracker
from marketplace.partners import PartnerService
from marketplace.quality import ContentMetadata, QualityScorer

DAY = 86400


@pytest.fixture
def feed(db):
    return ExploreFeedService(db)


def _scored(item_id, content_type, score):
    return {"id": item_id, "content_type": content_type, "ranking_score": score}


def test_interleave_keeps_primary_share():
    items = [
        _scored("o1", "expert_tip", 90),
        _scored("o2", "market_insight", 80),
        _scored("p1", "property_tour", 10),
        _scored("p2", "development_showcase", 5),
    ]

    mixed = interleave_primary(items, 0.5)

    assert [item["id"] for item in mixed] == ["p1", "o1", "p2", "o2"]


def test_interleave_prefers_score_when_share_is_met():
    items = [_scored("p1", "property_tour", 90), _scored("o1", "expert_tip", 95), _scored("p2", "property_tour", 10)]
    assert [item["id"] for item in interleave_primary(items, 0.0)] == ["o1", "p1", "p2"]


def test_feed_without_phase_ranks_by_algorithm(feed, add_content, now):
    old = add_content(created_at=now - 30 * DAY)
    fresh = add_content(created_at=now)
    add_content(is_active=False)

    page = feed.get_feed(now=now)

    assert page.phase is None
    assert page.total == 2
    assert [item["id"] for item in page.items] == [fresh, old]
    assert page.items[0]["ranking_score"] > page.items[1]["ranking_score"]


def test_empty_feed(feed):
    page = feed.get_feed()
    assert page.items == []
    assert page.has_more is False


def test_pre_launch_feed_is_editorial(db, feed, add_content, now):
    LaunchTracker(db).transition_phase("pre_launch")
    add_content(created_at=now)
    featured = add_content(created_at=now - 60 * DAY, is_featured=True)

    page = feed.get_feed(now=now)

    assert page.phase == "pre_launch"
    assert page.items[0]["id"] == featured
    assert page.items[0]["ranking_score"] == 100.0
    assert page.items[1]["ranking_score"] == 0.0


def test_low_quality_content_is_demoted(db, feed, add_content, now):
    weak = add_content(created_at=now)
    strong = add_content(created_at=now - 3 * DAY)
    scorer = QualityScorer(db)
    scorer.calculate_initial_score(weak, ContentMetadata())
    for _ in range(10):
        scorer.record_negative_signal(weak, "report")

    page = feed.get_feed(now=now)

    assert [item["id"] for item in page.items] == [strong, weak]
    assert page.items[1]["visibility_multiplier"] == 0.2


def test_content_type_filter_and_pagination(feed, add_content, now):
    for i in range(5):
        add_content("expert_tip", created_at=now - i * DAY)
    add_content("property_tour", created_at=now)

    first = feed.get_feed(content_type="expert_tip", limit=2, now=now)
    assert first.total == 5
    assert first.has_more is True
    assert all(item["content_type"] == "expert_tip" for item in first.items)

    last = feed.get_feed(content_type="expert_tip", limit=2, offset=4, now=now)
    assert len(last.items) == 1
    assert last.has_more is False


def test_feed_validation(feed):
    with pytest.raises(ValueError):
        feed.get_feed(limit=0)
    with pytest.raises(ValueError):
        feed.get_feed(limit=1000)
    with pytest.raises(ValueError):
        feed.get_feed(offset=-1)


def test_feed_caps_boosted_items(db, feed, add_content, now):
    partner_id = PartnerService(db).register_partner("Coastal Realty", "user-1")
    boosts = BoostCampaignService(db)
    boosted = [add_content(partner_id=partner_id, created_at=now) for _ in range(3)]
    for content_id in boosted:
        boosts.create_campaign(partner_id, content_id, None, budget=500, duration_days=7, start_date=now)
    for _ in range(3):
        add_content(created_at=now - 2 * DAY)

    page = feed.get_feed(now=now)

    assert page.total == 6
    assert sum(1 for item in page.items if item["is_boosted"]) == 1
    assert page.items[0]["is_boosted"] is True


def test_agency_feed(db, feed, add_content, now):
    agency_id = db.save_agency("Pam Golding")
    newest = add_content(agency_id=agency_id, created_at=now)
    older = add_content(agency_id=agency_id, created_at=now - DAY)
    featured = add_content(agency_id=agency_id, created_at=now - 10 * DAY, is_featured=True)
    add_content(created_at=now)

    page = feed.get_agency_feed(agency_id, limit=2)

    assert [item["id"] for item in page.items] == [featured, newest]
    assert page.total == 3
    assert page.has_more is True
    assert feed.get_agency_feed(agency_id, limit=2, offset=2).items[0]["id"] == older
