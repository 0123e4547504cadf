"""
Main CLI entry point for the property marketplace backend.
"""

import json
import logging
from dataclasses import asdict

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from analysis.location_analytics import LocationAnalytics
from analysis.price_insights import PriceInsights
from config import Config
from config.settings import LAUNCH_METRIC_TARGETS, LAUNCH_PHASES
from marketplace.buyability import FinancialProfile, calculate_buyability, calculate_total_acquisition_costs
from marketplace.content_approval import QUEUE_STATUSES, REVIEW_DECISIONS, ContentApprovalService
from marketplace.database import Database
from marketplace.explore_feed import ExploreFeedService
from marketplace.founding_partners import FoundingPartnerService
from marketplace.launch import LaunchTracker
from marketplace.migrations import MigrationRunner
from marketplace.search import SORT_OPTIONS, Bounds, PropertySearchService, SearchFilters
from marketplace.seed import seed_all
from marketplace.subscriptions import PLAN_CATEGORIES, SubscriptionService
from marketplace.utils import cents_to_rand, format_zar, setup_logging, today_iso, ts_to_datetime

console = Console()

HANDLED_ERRORS = (ValueError, LookupError)


def _database(ctx) -> Database:
    return Database(ctx.obj["database_url"])


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--database", "database_url", default=None, help="Database URL or SQLite path")
@click.pass_context
def cli(ctx, debug, database_url):
    """Property marketplace - listings, price insights, Explore feed and billing."""
    log_level = "DEBUG" if debug else Config.LOG_LEVEL
    setup_logging(log_level, Config.LOG_FILE or None)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or Config.DATABASE_URL


@cli.command()
@click.pass_context
def setup(ctx):
    """Validate configuration and create the database schema."""
    console.print("[bold]Setting up property marketplace...[/bold]\n")

    errors = Config.validate()
    if errors:
        console.print("[bold red]Configuration errors:[/bold red]")
        for error in errors:
            console.print(f"  ❌ {error}")
        return

    console.print("✅ Configuration valid")

    db = _database(ctx)
    db.create_tables()
    console.print(f"✅ Database initialized: {db.url}")
    console.print("\n[bold green]Setup complete! Ready to use.[/bold green]")


@cli.command()
@click.option("--status", "show_status", is_flag=True, help="Show migration status instead of applying")
@click.pass_context
def migrate(ctx, show_status):
    """Apply pending schema migrations."""
    runner = MigrationRunner(_database(ctx))

    if show_status:
        table = Table(title="Schema Migrations", show_header=True)
        table.add_column("Version", style="cyan", justify="right")
        table.add_column("Name")
        table.add_column("Applied", style="green")
        for row in runner.status():
            applied = ts_to_datetime(row["applied_at"]).strftime("%Y-%m-%d %H:%M") if row["applied_at"] else "pending"
            table.add_row(f"{row['version']:03d}", row["name"], applied)
        console.print(table)
        return

    applied = runner.apply_all()
    if applied:
        console.print(f"✅ Applied migrations: {', '.join(f'{v:03d}' for v in applied)}")
    else:
        console.print("[green]Schema is up to date[/green]")


@cli.command()
@click.option("--listings", default=200, help="Number of listings to create")
@click.option("--content", default=60, help="Number of Explore items to create")
@click.option("--seed", "rng_seed", default=42, help="Random seed")
@click.pass_context
def seed(ctx, listings, content, rng_seed):
    """Load demo data."""
    db = _database(ctx)
    db.create_tables()
    try:
        counts = seed_all(db, listings=listings, content=content, rng_seed=rng_seed)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error seeding data: {e}[/red]")
        logging.exception("Seed error")
        return

    for name, count in counts.items():
        console.print(f"✅ {name}: {count}")


@cli.command()
@click.option("--province", help="Province slug or name")
@click.option("--city", help="City slug or name")
@click.option("--suburb", "suburbs", multiple=True, help="Suburb slug or name (repeatable)")
@click.option("--type", "property_types", multiple=True, help="Property type (repeatable)")
@click.option("--listing-type", help="sale, rent, ...")
@click.option("--min-price", type=int)
@click.option("--max-price", type=int)
@click.option("--min-beds", type=int)
@click.option("--status", "statuses", multiple=True, help="available, sold, let, under_offer")
@click.option("--sort", type=click.Choice(SORT_OPTIONS), default="date_desc")
@click.option("--page", default=1)
@click.option("--page-size", type=int)
@click.option("--counts", "show_counts", is_flag=True, help="Show filter counts instead of listings")
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def search(ctx, province, city, suburbs, property_types, listing_type, min_price, max_price, min_beds, statuses, sort,
           page, page_size, show_counts, format):
    """Search property listings."""
    service = PropertySearchService(_database(ctx))
    filters = SearchFilters(
        province=province,
        city=city,
        suburbs=list(suburbs),
        property_types=list(property_types),
        listing_type=listing_type,
        min_price=min_price,
        max_price=max_price,
        min_bedrooms=min_beds,
        statuses=list(statuses),
    )

    if show_counts:
        try:
            counts = service.get_filter_counts(filters)
        except HANDLED_ERRORS as e:
            console.print(f"[red]Error counting listings: {e}[/red]")
            logging.exception("Filter count error")
            return
        if format == "json":
            _echo_json(counts)
            return
        table = Table(title=f"Filter Counts ({counts['total']} listings)", show_header=True)
        table.add_column("Facet", style="cyan")
        table.add_column("Value")
        table.add_column("Listings", justify="right", style="green")
        for property_type, count in counts["by_property_type"].items():
            table.add_row("Property type", property_type, str(count))
        for row in counts["by_price_range"]:
            table.add_row("Price", row["range"], str(row["count"]))
        console.print(table)
        return

    try:
        results = service.search(filters, sort=sort, page=page, page_size=page_size)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error searching: {e}[/red]")
        logging.exception("Search error")
        return

    if format == "json":
        _echo_json(asdict(results))
        return

    if not results.properties:
        console.print("[yellow]No properties match these filters[/yellow]")
        return

    table = Table(title=f"Properties (page {results.page}, {results.total} total)", show_header=True)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Suburb")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Beds", justify="right")
    table.add_column("Status", style="magenta")
    table.add_column("Agent")
    for prop in results.properties:
        table.add_row(
            str(prop["id"]),
            prop["title"],
            prop["suburb"] or "",
            format_zar(prop["price"]),
            str(prop["bedrooms"] or "-"),
            prop["status"],
            prop["agent"]["name"] or "-",
        )
    console.print(table)
    if results.has_more:
        console.print(f"[dim]More results: --page {results.page + 1}[/dim]")


@cli.command()
@click.option("--location-type", type=click.Choice(["province", "city", "suburb"]), help="Show stats for one location")
@click.option("--location", help="Location name or slug")
@click.option("--level", type=click.Choice(["national", "province", "city"]), default="national")
@click.option("--parent-id", type=int, help="Province id (level province) or city id (level city)")
@click.pass_context
def insights(ctx, location_type, location, level, parent_id):
    """Show price insights for a location or a drill-down level."""
    analyzer = PriceInsights(_database(ctx))
    try:
        if location_type:
            if not location:
                raise click.UsageError("--location is required with --location-type")
            analyzer.display_location_stats(analyzer.location_stats(location_type, location))
        else:
            analyzer.display_hierarchy(analyzer.hierarchy(level, parent_id))
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error generating insights: {e}[/red]")
        logging.exception("Insights error")


@cli.command()
@click.option("--north", type=float, required=True)
@click.option("--south", type=float, required=True)
@click.option("--east", type=float, required=True)
@click.option("--west", type=float, required=True)
@click.option("--grid", "grid_size", type=int, help="Cells per side (5-50)")
@click.option("--type", "property_types", multiple=True, help="Property type (repeatable)")
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def heatmap(ctx, north, south, east, west, grid_size, property_types, format):
    """Listing density heatmap over map bounds."""
    analyzer = PriceInsights(_database(ctx))
    try:
        cells = analyzer.heatmap(
            Bounds(north=north, south=south, east=east, west=west),
            grid_size=grid_size,
            property_types=list(property_types) or None,
        )
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error building heatmap: {e}[/red]")
        logging.exception("Heatmap error")
        return

    if format == "json":
        _echo_json([asdict(cell) for cell in cells])
        return

    table = Table(title=f"Heatmap ({len(cells)} cells)", show_header=True)
    table.add_column("Lat", justify="right")
    table.add_column("Lng", justify="right")
    table.add_column("Listings", justify="right", style="cyan")
    table.add_column("Intensity", justify="right", style="red")
    for cell in sorted(cells, key=lambda c: -c.count):
        table.add_row(f"{cell.latitude:.4f}", f"{cell.longitude:.4f}", str(cell.count), f"{cell.intensity:.2f}")
    console.print(table)


@cli.command("refresh-insights")
@click.pass_context
def refresh_insights(ctx):
    """Recompute the cached price analytics for every location."""
    written = PriceInsights(_database(ctx)).refresh_price_analytics()
    console.print(f"✅ Refreshed price analytics for {written} locations")


@cli.group()
def locations():
    """Market activity, trending suburbs and similar suburbs."""


@locations.command("activity")
@click.argument("location_type", type=click.Choice(["province", "city", "suburb"]))
@click.argument("location_id", type=int)
@click.pass_context
def locations_activity(ctx, location_type, location_id):
    """Show listing activity for a location."""
    try:
        activity = LocationAnalytics(_database(ctx)).market_activity(location_type, location_id)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error loading market activity: {e}[/red]")
        logging.exception("Market activity error")
        return
    days = activity.avg_days_on_market
    console.print(
        Panel(
            f"Active listings: {activity.total_listings}\n"
            f"For sale / to rent: {activity.for_sale_count} / {activity.to_rent_count}\n"
            f"New in the last 30 days: {activity.new_listings}\n"
            f"Average days on market: {days if days is not None else 'n/a'}",
            title=f"Market Activity ({location_type} {location_id})",
        )
    )


@locations.command("trending")
@click.option("--limit", default=10)
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def locations_trending(ctx, limit, format):
    """Suburbs with the most recent search interest."""
    analytics = LocationAnalytics(_database(ctx))
    try:
        trending = analytics.trending_suburbs(limit=limit)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error loading trending suburbs: {e}[/red]")
        logging.exception("Trending error")
        return
    if format == "json":
        _echo_json(trending)
        return
    analytics.display_trending(trending)


@locations.command("similar")
@click.argument("suburb_id", type=int)
@click.option("--limit", default=5)
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def locations_similar(ctx, suburb_id, limit, format):
    """Suburbs that resemble a suburb."""
    analytics = LocationAnalytics(_database(ctx))
    try:
        similar = analytics.similar_locations(suburb_id, limit=limit)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error finding similar suburbs: {e}[/red]")
        logging.exception("Similar suburbs error")
        return
    if format == "json":
        _echo_json(similar)
        return
    analytics.display_similar(f"suburb {suburb_id}", similar)


@cli.command()
@click.option("--lat", type=float, help="Viewer latitude")
@click.option("--lng", type=float, help="Viewer longitude")
@click.option("--topic", help="Topic id for boost campaigns")
@click.option("--type", "content_type", help="Only one content type")
@click.option("--limit", type=int)
@click.option("--offset", default=0)
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def feed(ctx, lat, lng, topic, content_type, limit, offset, format):
    """Show the Explore feed."""
    service = ExploreFeedService(_database(ctx))
    location = (lat, lng) if lat is not None and lng is not None else None
    try:
        page = service.get_feed(user_location=location, topic_id=topic, content_type=content_type,
                                limit=limit, offset=offset)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error building feed: {e}[/red]")
        logging.exception("Feed error")
        return

    if format == "json":
        _echo_json(asdict(page))
        return

    table = Table(title=f"Explore Feed (phase: {page.phase or 'none'}, {page.total} items)", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Boosted", justify="center", style="magenta")
    for position, item in enumerate(page.items, start=offset + 1):
        table.add_row(
            str(position),
            item["content_type"],
            item["title"] or "",
            f"{item['ranking_score']:.1f}",
            "★" if item["is_boosted"] else "",
        )
    console.print(table)


@cli.group()
def launch():
    """Launch phase, content quotas and metrics."""


@launch.command("status")
@click.pass_context
def launch_status(ctx):
    """Show the current phase and launch readiness."""
    tracker = LaunchTracker(_database(ctx))
    phase = tracker.get_current_phase()
    if phase:
        console.print(
            Panel(
                f"Phase: [bold]{phase.phase}[/bold]\n"
                f"Started: {ts_to_datetime(phase.start_date).strftime('%Y-%m-%d')}\n"
                f"Primary content ratio: {phase.primary_content_ratio:.0%}\n"
                f"Algorithm / editorial: {phase.algorithm_weight:.1f} / {phase.editorial_weight:.1f}",
                title="Launch Phase",
            )
        )
    else:
        console.print("[yellow]No active launch phase[/yellow]")

    readiness = tracker.check_launch_readiness()
    table = Table(title="Content Quotas", show_header=True)
    table.add_column("Content type", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Required", justify="right")
    table.add_column("Met", justify="center")
    for quota in readiness.quota_details:
        table.add_row(quota["content_type"], str(quota["current"]), str(quota["required"]), "✅" if quota["met"] else "❌")
    console.print(table)

    colour = "green" if readiness.is_ready else "red"
    console.print(
        f"[{colour}]Ready for launch: {'yes' if readiness.is_ready else 'no'} "
        f"({readiness.total_content_count} pieces of content)[/{colour}]"
    )


@launch.command("transition")
@click.argument("phase", type=click.Choice(list(LAUNCH_PHASES)))
@click.option("--force", is_flag=True, help="Skip the launch readiness check")
@click.pass_context
def launch_transition(ctx, phase, force):
    """Move to a new launch phase."""
    result = LaunchTracker(_database(ctx)).transition_phase(phase, force=force)
    colour = "green" if result.success else "red"
    console.print(f"[{colour}]{result.message}[/{colour}]")


@launch.command("metrics")
@click.option("--date", "metric_date", help="YYYY-MM-DD (today by default)")
@click.option("--engagement", type=float, required=True, help="Topic engagement rate (%)")
@click.option("--watch-rate", type=float, required=True, help="Partner content watch rate (%)")
@click.option("--save-share", type=float, required=True, help="Save/share rate (%)")
@click.option("--weekly-visits", type=float, required=True, help="Weekly visits per user")
@click.option("--confidence", type=float, default=0.0, help="Algorithm confidence score")
@click.pass_context
def launch_metrics(ctx, metric_date, engagement, watch_rate, save_share, weekly_visits, confidence):
    """Record a day of launch metrics."""
    tracker = LaunchTracker(_database(ctx))
    metric_date = metric_date or today_iso()
    tracker.record_launch_metrics(metric_date, engagement, watch_rate, save_share, weekly_visits, confidence)
    console.print(f"✅ Recorded launch metrics for {metric_date}")

    metrics = tracker.get_launch_metrics(metric_date)
    for row in tracker.underperforming_metrics(metrics):
        console.print(
            f"[yellow]⚠ {row['name']}: {row['value']:.1f} (target {LAUNCH_METRIC_TARGETS[row['name']]:.1f})[/yellow]"
        )


@launch.command("recover")
@click.option("--force", is_flag=True, help="Trigger recovery mode without checking metrics")
@click.pass_context
def launch_recover(ctx, force):
    """Shift towards editorial curation if metrics underperform."""
    tracker = LaunchTracker(_database(ctx))
    try:
        if force:
            tracker.trigger_recovery_mode()
            triggered = True
        else:
            triggered = tracker.check_metrics_and_recover()
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error triggering recovery: {e}[/red]")
        logging.exception("Recovery error")
        return

    if triggered:
        phase = tracker.get_current_phase()
        console.print(
            f"[yellow]Recovery mode active: editorial {phase.editorial_weight:.1f}, "
            f"algorithm {phase.algorithm_weight:.1f}[/yellow]"
        )
    else:
        console.print("[green]Metrics on target, no recovery needed[/green]")


@cli.group()
def partners():
    """Partner content review and the founding partner programme."""


@partners.command("queue")
@click.option("--status", type=click.Choice(QUEUE_STATUSES), default="pending")
@click.option("--partner", "partner_id", help="Only one partner")
@click.option("--limit", default=50)
@click.pass_context
def partners_queue(ctx, status, partner_id, limit):
    """List content approval queue entries."""
    entries = ContentApprovalService(_database(ctx)).get_approval_queue(status=status, partner_id=partner_id, limit=limit)
    if not entries:
        console.print(f"[green]No {status} content[/green]")
        return

    table = Table(title=f"Content Approval Queue ({status})", show_header=True)
    table.add_column("Queue id", style="cyan")
    table.add_column("Content", justify="right")
    table.add_column("Partner")
    table.add_column("Submitted")
    table.add_column("Feedback", style="yellow")
    for entry in entries:
        submitted = ts_to_datetime(entry.submitted_at).strftime("%Y-%m-%d %H:%M") if entry.submitted_at else ""
        table.add_row(entry.id, str(entry.content_id), entry.partner_id, submitted, entry.feedback or "")
    console.print(table)


@partners.command("review")
@click.argument("queue_id")
@click.argument("decision", type=click.Choice(REVIEW_DECISIONS))
@click.option("--reviewer", required=True, help="Reviewer id")
@click.option("--feedback", help="Required for rejections and revision requests")
@click.option("--violation", "violations", multiple=True, help="Violation type (repeatable)")
@click.pass_context
def partners_review(ctx, queue_id, decision, reviewer, feedback, violations):
    """Record a review decision."""
    try:
        entry = ContentApprovalService(_database(ctx)).review_content(
            queue_id, decision, reviewer, feedback=feedback, violation_types=violations
        )
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error reviewing content: {e}[/red]")
        logging.exception("Review error")
        return
    console.print(f"✅ Content {entry.content_id} {entry.status}")


@partners.command("founding-check")
@click.pass_context
def partners_founding_check(ctx):
    """Warn founding partners that are behind on their content commitment."""
    result = FoundingPartnerService(_database(ctx)).check_all_commitments()
    console.print(
        f"Checked {result['checked']} founding partners: "
        f"{result['warned']} warned, {result['revoked']} revoked"
    )


@cli.command()
@click.option("--income", type=float, help="Monthly gross income (rands)")
@click.option("--income-range", type=click.Choice(["under_15k", "15k_25k", "25k_50k", "50k_100k", "over_100k"]))
@click.option("--combined-income", type=float, help="Partner's monthly income (rands)")
@click.option("--expenses", type=float, help="Monthly expenses (rands)")
@click.option("--debts", type=float, help="Monthly debt repayments (rands)")
@click.option("--dependents", default=0)
@click.option("--deposit", type=float, help="Savings available for a deposit (rands)")
@click.option("--credit-score", type=int)
@click.option("--format", type=click.Choice(["rich", "json"]), default="rich")
def buyability(income, income_range, combined_income, expenses, debts, dependents, deposit, credit_score, format):
    """Estimate what a buyer can afford."""

    def cents(value):
        return int(round(value * 100)) if value is not None else None

    profile = FinancialProfile(
        income=cents(income),
        income_range=income_range,
        combined_income=cents(combined_income),
        monthly_expenses=cents(expenses),
        monthly_debts=cents(debts),
        dependents=dependents,
        savings_deposit=cents(deposit),
        credit_score=credit_score,
    )
    try:
        result = calculate_buyability(profile, prime_rate=Config.PRIME_RATE)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error calculating buyability: {e}[/red]")
        logging.exception("Buyability error")
        return

    if format == "json":
        _echo_json(asdict(result))
        return

    costs = calculate_total_acquisition_costs(result.affordability_max)
    colour = {"high": "green", "medium": "yellow", "low": "red"}[result.score]
    console.print(
        Panel(
            f"Buyability: [bold {colour}]{result.score.upper()}[/bold {colour}] "
            f"(confidence {result.confidence}%)\n"
            f"Price range: {format_zar(cents_to_rand(result.affordability_min))} - "
            f"{format_zar(cents_to_rand(result.affordability_max))}\n"
            f"Monthly bond capacity: {format_zar(cents_to_rand(result.monthly_payment_capacity))}\n"
            f"Transfer and bond costs at the top of the range: {format_zar(cents_to_rand(costs['total']))}",
            title="Affordability",
        )
    )
    console.print("\n[bold]Recommendations:[/bold]")
    for recommendation in result.recommendations:
        console.print(f"  • {recommendation}")


@cli.group()
def subscription():
    """Subscription plans and user subscriptions."""


@subscription.command("plans")
@click.option("--category", type=click.Choice(PLAN_CATEGORIES))
@click.pass_context
def subscription_plans(ctx, category):
    """List subscription plans."""
    plans = SubscriptionService(_database(ctx)).get_all_plans(category)
    if not plans:
        console.print("[yellow]No plans found (run seed first)[/yellow]")
        return

    table = Table(title="Subscription Plans", show_header=True)
    table.add_column("Plan", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Price / month", justify="right", style="green")
    table.add_column("Trial", justify="right")
    for plan in plans:
        table.add_row(
            plan.plan_id,
            plan.display_name,
            plan.category,
            f"R {cents_to_rand(plan.price_zar):,.2f}",
            f"{plan.trial_days} days" if plan.is_trial_plan else "",
        )
    console.print(table)


@subscription.command("trial")
@click.argument("user_id", type=int)
@click.argument("category", type=click.Choice(PLAN_CATEGORIES))
@click.pass_context
def subscription_trial(ctx, user_id, category):
    """Start a user's free trial."""
    try:
        sub = SubscriptionService(_database(ctx)).start_trial(user_id, category)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error starting trial: {e}[/red]")
        logging.exception("Trial error")
        return
    ends = ts_to_datetime(sub.trial_ends_at).strftime("%Y-%m-%d")
    console.print(f"✅ Trial {sub.plan_id} started for user {user_id}, ends {ends}")


@subscription.command("upgrade")
@click.argument("user_id", type=int)
@click.argument("plan_id")
@click.pass_context
def subscription_upgrade(ctx, user_id, plan_id):
    """Upgrade a user to a paid plan."""
    try:
        sub = SubscriptionService(_database(ctx)).upgrade(user_id, plan_id)
    except HANDLED_ERRORS as e:
        console.print(f"[red]Error upgrading: {e}[/red]")
        logging.exception("Upgrade error")
        return
    console.print(f"✅ User {user_id} is now on {sub.plan_id} ({sub.status})")


@subscription.command("status")
@click.argument("user_id", type=int)
@click.pass_context
def subscription_status(ctx, user_id):
    """Show a user's subscription."""
    service = SubscriptionService(_database(ctx))
    sub = service.get_user_subscription(user_id)
    if not sub:
        console.print(f"[yellow]User {user_id} has no subscription[/yellow]")
        return

    credits = service.get_boost_credits(user_id)
    lines = [
        f"Plan: [bold]{sub.plan_id}[/bold]",
        f"Status: {sub.status}",
        f"Boost credits: {credits['remaining']} of {credits['total']}",
    ]
    if sub.status == "trial_active" and sub.trial_ends_at:
        lines.append(f"Trial ends: {ts_to_datetime(sub.trial_ends_at).strftime('%Y-%m-%d')}")
    if sub.downgrade_scheduled:
        effective = ts_to_datetime(sub.downgrade_effective_date).strftime("%Y-%m-%d")
        lines.append(f"Downgrade to {sub.downgrade_to_plan_id} on {effective}")
    console.print(Panel("\n".join(lines), title=f"User {user_id}"))


if __name__ == "__main__":
    cli()
