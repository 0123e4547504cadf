import json

import pytest
from click.testing import CliRunner

from main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    db_path = str(tmp_path / "cli.db")

    def _invoke(*args):
        result = runner.invoke(cli, ["--database", db_path, *args])
        assert result.exit_code == 0, result.output
        return result

    _invoke("setup")
    return _invoke


@pytest.fixture
def seeded(invoke):
    invoke("seed", "--listings", "30", "--content", "12", "--seed", "7")
    return invoke


def test_setup_and_migration_status(invoke):
    result = invoke("migrate", "--status")
    assert "add_listing_cost_columns" in result.output
    assert "pending" not in result.output
    assert "up to date" in invoke("migrate").output


def test_seed_reports_counts(invoke):
    result = invoke("seed", "--listings", "5", "--content", "3")
    assert "listings: 5" in result.output
    assert "plans: 10" in result.output


def test_search_json(seeded):
    result = seeded("search", "--sort", "price_asc", "--page-size", "5", "--format", "json")

    payload = json.loads(result.output)
    prices = [prop["price"] for prop in payload["properties"]]
    assert prices == sorted(prices)
    assert payload["page_size"] == 5
    assert all(prop["status"] == "available" for prop in payload["properties"])


def test_search_invalid_page_prints_error(seeded):
    result = seeded("search", "--page", "0")
    assert "Error searching" in result.output


def test_insights_and_heatmap(seeded):
    assert "Price Insights" in seeded("insights").output
    assert "Prices in" in seeded("insights", "--location-type", "province", "--location", "gauteng").output

    result = seeded(
        "heatmap", "--north", "-25.5", "--south", "-26.5", "--east", "28.5", "--west", "27.5", "--format", "json"
    )
    cells = json.loads(result.output)
    assert all(cell["count"] > 0 for cell in cells)


def test_feed_and_launch(seeded):
    payload = json.loads(seeded("feed", "--limit", "5", "--format", "json").output)
    assert payload["total"] == 12
    assert len(payload["items"]) == 5

    assert "No active launch phase" in seeded("launch", "status").output
    assert "Successfully transitioned" in seeded("launch", "transition", "ramp_up").output
    seeded(
        "launch", "metrics", "--date", "2025-10-01", "--engagement", "30", "--watch-rate", "45",
        "--save-share", "35", "--weekly-visits", "3.5",
    )
    assert "Recovery mode active" in seeded("launch", "recover").output


def test_buyability_json(runner):
    result = runner.invoke(cli, ["buyability", "--income", "45000", "--debts", "3000", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["score"] in ("low", "medium", "high")
    assert payload["affordability_max"] > payload["affordability_min"] > 0


def test_subscription_flow(seeded):
    assert "agent_pro" in seeded("subscription", "plans", "--category", "agent").output
    assert "Trial agent_trial started for user 7" in seeded("subscription", "trial", "7", "agent").output
    assert "Error starting trial" in seeded("subscription", "trial", "7", "agent").output
    assert "now on agent_pro (active_paid)" in seeded("subscription", "upgrade", "7", "agent_pro").output

    status = seeded("subscription", "status", "7").output
    assert "agent_pro" in status
    assert "Boost credits: 5 of 5" in status


def test_search_counts_json(seeded):
    payload = json.loads(seeded("search", "--counts", "--format", "json").output)

    assert 0 < payload["total"] <= 30
    assert sum(payload["by_property_type"].values()) == payload["total"]
    assert sum(row["count"] for row in payload["by_price_range"]) == payload["total"]


def test_locations(seeded):
    assert "Market Activity" in seeded("locations", "activity", "suburb", "1").output
    assert "not found" in seeded("locations", "activity", "suburb", "9999").output
    assert "No suburb searches" in seeded("locations", "trending").output
    assert json.loads(seeded("locations", "similar", "1", "--format", "json").output) is not None


def test_partners_queue_and_founding_check(seeded):
    assert "No pending content" in seeded("partners", "queue").output
    assert "Error reviewing content" in seeded("partners", "review", "missing", "approved", "--reviewer", "r1").output
    assert "Checked 0 founding partners" in seeded("partners", "founding-check").output
