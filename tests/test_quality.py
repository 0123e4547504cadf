import pytest

from marketplace.database import RecordNotFound
from marketplace.partners import PartnerService
from marketplace.quality import (
    ContentMetadata,
    EngagementData,
    QualityScorer,
    calculate_engagement_score,
    calculate_metadata_score,
)

COMPLETE_METADATA = ContentMetadata(
    title="Sea Point penthouse walkthrough",
    description="A full tour of a three bedroom penthouse on Beach Road with views over the Atlantic and Lion's Head.",
    tags=["penthouse", "sea-view", "cape-town", "luxury", "walkthrough"],
    location="Sea Point",
    thumbnail_url="https://cdn.example.co.za/thumb.jpg",
    category="luxury",
)


@pytest.fixture
def scorer(db):
    return QualityScorer(db)


def test_metadata_score_bands():
    assert calculate_metadata_score(COMPLETE_METADATA) == pytest.approx(100.0)
    assert calculate_metadata_score(ContentMetadata()) == 0.0
    partial = ContentMetadata(title="Tour", description="x" * 25, tags=["a"])
    # title too short, description 8, one tag 6
    assert calculate_metadata_score(partial) == pytest.approx(14.0)


def test_engagement_score_caps():
    assert calculate_engagement_score(EngagementData()) == 0.0
    assert calculate_engagement_score(EngagementData(watch_time=90, total_duration=60)) == 40.0
    maxed = EngagementData(watch_time=60, total_duration=60, saves=50, shares=50, click_throughs=50)
    assert calculate_engagement_score(maxed) == 100.0


def test_initial_score_uses_neutral_engagement(scorer):
    assert scorer.calculate_initial_score(1, COMPLETE_METADATA) == pytest.approx(52.5)
    record = scorer.get_quality_score(1)
    assert record.engagement_score == 50.0
    assert record.production_score == 50.0

    assert scorer.calculate_initial_score(1, ContentMetadata()) == pytest.approx(32.5)
    assert scorer.get_quality_score("1").metadata_score == 0.0


def test_engagement_update_blends(scorer):
    scorer.calculate_initial_score(7, COMPLETE_METADATA)
    engagement = EngagementData(watch_time=30, total_duration=60, saves=2, shares=1)

    score = scorer.update_score_from_engagement(7, engagement)

    assert scorer.get_quality_score(7).engagement_score == pytest.approx(44.3)
    assert score == pytest.approx(20 + 44.3 * 0.4 + 12.5)


def test_negative_signals_penalise(scorer):
    scorer.calculate_initial_score(3, COMPLETE_METADATA)

    assert scorer.record_negative_signal(3, "report") == pytest.approx(45.0)
    assert scorer.get_quality_score(3).negative_signals == 5
    with pytest.raises(ValueError):
        scorer.record_negative_signal(3, "dislike")
    with pytest.raises(RecordNotFound):
        scorer.record_negative_signal(99, "quick_skip")


def test_penalty_is_capped(scorer):
    assert scorer.calculate_overall_score(100, 100, 100, 1000) == pytest.approx(85 - 50)
    assert scorer.calculate_overall_score(0, 0, 0, 10) == 0.0


def test_underperforming_content(db, scorer, add_content):
    partner_id = PartnerService(db).register_partner("Atlantic Estates", "user-1")
    weak = add_content(partner_id=partner_id)
    strong = add_content(partner_id=partner_id)
    add_content()
    scorer.calculate_initial_score(weak, ContentMetadata())
    scorer.calculate_initial_score(strong, COMPLETE_METADATA)
    for _ in range(2):
        scorer.record_negative_signal(weak, "quick_skip")

    assert scorer.get_underperforming_content(partner_id) == [str(weak)]
    assert scorer.get_underperforming_content("nobody") == []


def test_quality_scores_lookup(scorer):
    scorer.calculate_initial_score(1, COMPLETE_METADATA)
    assert scorer.get_quality_scores([1, 2]) == {"1": pytest.approx(52.5)}
    assert scorer.get_quality_scores([]) == {}


@pytest.mark.parametrize(
    "score, multiplier",
    [(85, 1.0), (70, 1.0), (55, 0.8), (45, 0.5), (40, 0.5), (20, 0.2)],
)
def test_visibility_multiplier(score, multiplier):
    assert QualityScorer.visibility_multiplier(score) == multiplier
