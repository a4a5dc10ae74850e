"""
Command-line interface for the ASO Combo Analyzer.

Analyzes the keyword combinations of an App Store listing and prints the
highest-priority combos, optionally exporting them to CSV or Excel.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .aggregator import get_tier_label, get_tier_number
from .analyzer import ComboAnalyzer
from .config import ComboAnalysisConfig, ComboConfigError
from .export import ExportError, export_result
from .models import ComboAnalysisResult, StrengthTier
from .priority_scorer import get_priority_tier
from .providers import HttpPopularityProvider, HttpRankingProvider
from .signal_loader import SignalLoadError, load_popularity_file, load_rankings_file

console = Console()
# Log records go to stderr so that --json output stays parseable
err_console = Console(stderr=True)

PRESETS = {
    "default": ComboAnalysisConfig.default,
    "quick": ComboAnalysisConfig.quick,
    "exhaustive": ComboAnalysisConfig.exhaustive,
}

PRIORITY_STYLES = {"high": "green", "medium": "yellow", "low": "dim"}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )


def _build_config(
    mode: str,
    min_length: Optional[int],
    max_length: Optional[int],
    budget: Optional[int],
    region: str,
    platform: str,
    timeout: float,
) -> ComboAnalysisConfig:
    overrides = {"region": region, "platform": platform, "provider_timeout": timeout}
    if min_length is not None:
        overrides["min_length"] = min_length
    if max_length is not None:
        overrides["max_length"] = max_length
    if budget is not None:
        overrides["selection_budget"] = budget
    return PRESETS[mode](**overrides)


@click.command()
@click.option("--title", "-t", type=str, default="", help="App title.")
@click.option("--subtitle", "-s", type=str, default="", help="App subtitle.")
@click.option(
    "--keywords-field",
    "-k",
    type=str,
    default="",
    help="Comma-separated App Store keywords field.",
)
@click.option("--promo-text", type=str, default=None, help="Promotional text (not combined).")
@click.option(
    "--mode",
    type=click.Choice(sorted(PRESETS)),
    default="default",
    help="Configuration preset (default: default).",
)
@click.option("--min-length", type=int, default=None, help="Shortest combo length.")
@click.option("--max-length", type=int, default=None, help="Longest combo length (max 4).")
@click.option("--budget", type=int, default=None, help="Maximum combos returned.")
@click.option(
    "--popularity-file",
    type=click.Path(exists=True, path_type=Path),
    help="Keyword popularity signals (CSV or Excel).",
)
@click.option(
    "--rankings-file",
    type=click.Path(exists=True, path_type=Path),
    help="Combo ranking signals (CSV or Excel).",
)
@click.option("--ranking-url", type=str, default=None, help="Ranking service base URL.")
@click.option("--popularity-url", type=str, default=None, help="Popularity service base URL.")
@click.option(
    "--api-key",
    type=str,
    envvar="ASO_SIGNALS_API_KEY",
    help="Signal service API key. Can also be set via ASO_SIGNALS_API_KEY env var.",
)
@click.option("--app-id", type=str, default="", help="App identifier for ranking lookups.")
@click.option("--region", type=str, default="us", help="Storefront region (default: us).")
@click.option(
    "--platform",
    type=click.Choice(["ios", "android"]),
    default="ios",
    help="Store platform (default: ios).",
)
@click.option("--timeout", type=float, default=10.0, help="Provider timeout in seconds.")
@click.option("--top", type=int, default=20, help="Number of combos to display (default: 20).")
@click.option(
    "--missing-only",
    is_flag=True,
    default=False,
    help="Only display combos missing from the metadata.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Export selected combos to .csv or .xlsx.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose output.")
def main(
    title: str,
    subtitle: str,
    keywords_field: str,
    promo_text: Optional[str],
    mode: str,
    min_length: Optional[int],
    max_length: Optional[int],
    budget: Optional[int],
    popularity_file: Optional[Path],
    rankings_file: Optional[Path],
    ranking_url: Optional[str],
    popularity_url: Optional[str],
    api_key: Optional[str],
    app_id: str,
    region: str,
    platform: str,
    timeout: float,
    top: int,
    missing_only: bool,
    output: Optional[Path],
    as_json: bool,
    verbose: bool,
) -> None:
    """
    ASO Combo Analyzer - Find the keyword combinations your listing ranks for.

    Generates every 2-4 keyword combination from the title, subtitle and
    keywords field, classifies how strongly each one is placed, and ranks
    them by priority.

    Examples:

        aso-combos -t "Meditation Sleep Timer" -s "Mindfulness Wellness App"

        aso-combos -t "Meditation Timer" -s "Sleep Better" -k "relaxation,breathing" -o combos.csv
    """
    _configure_logging(verbose)

    if not any([title, subtitle, keywords_field]):
        console.print("[red]Error:[/red] Provide at least one of --title, --subtitle or --keywords-field")
        sys.exit(1)

    try:
        config = _build_config(mode, min_length, max_length, budget, region, platform, timeout)

        rankings = load_rankings_file(rankings_file) if rankings_file else None
        popularity = load_popularity_file(popularity_file) if popularity_file else None
        if verbose:
            if rankings is not None:
                console.print(f"  Loaded {len(rankings)} rankings from: {rankings_file}")
            if popularity is not None:
                console.print(f"  Loaded {len(popularity)} popularity rows from: {popularity_file}")

        analyzer = ComboAnalyzer(config)

        if ranking_url or popularity_url:
            with console.status("[bold green]Fetching signals..."):
                result = asyncio.run(analyzer.analyze_async(
                    title=title,
                    subtitle=subtitle,
                    keywords_field=keywords_field,
                    promo_text=promo_text,
                    ranking_provider=(
                        HttpRankingProvider(ranking_url, api_key=api_key, timeout=timeout)
                        if ranking_url else None
                    ),
                    popularity_provider=(
                        HttpPopularityProvider(popularity_url, api_key=api_key, timeout=timeout)
                        if popularity_url else None
                    ),
                    app_id=app_id,
                ))
        else:
            result = analyzer.analyze(
                title=title,
                subtitle=subtitle,
                keywords_field=keywords_field,
                promo_text=promo_text,
                rankings=rankings,
                popularity=popularity,
            )

        if output:
            export_result(result, output)

        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
            return

        console.print(Panel.fit(
            "[bold blue]ASO Combo Analyzer[/bold blue]\n"
            f"{title or '-'} | {subtitle or '-'}",
            border_style="blue",
        ))
        _display_summary(result, top, missing_only)

        if output:
            console.print(f"\n[bold green]Success![/bold green] Combos exported to: {output}")

    except ComboConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    except SignalLoadError as e:
        console.print(f"[red]Signal loading error:[/red] {e}")
        sys.exit(1)
    except ExportError as e:
        console.print(f"[red]Export error:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        sys.exit(1)


def _display_summary(result: ComboAnalysisResult, top: int, missing_only: bool) -> None:
    """Display tier counts and the top combos."""
    stats = result.stats

    tier_table = Table(title="Strength Tiers", show_header=True)
    tier_table.add_column("Tier", style="cyan")
    tier_table.add_column("Score", justify="right")
    tier_table.add_column("Combos", justify="right", style="green")
    tier_table.add_column("Rating")
    for tier in StrengthTier:
        count = stats.tier_counts[tier]
        if count:
            tier_table.add_row(
                tier.value,
                str(tier.score),
                str(count),
                get_tier_label(get_tier_number(tier)),
            )
    console.print(tier_table)

    console.print(
        f"\n[cyan]Generated:[/cyan] {stats.total_generated}  "
        f"[cyan]Existing:[/cyan] {stats.existing}  "
        f"[cyan]Missing:[/cyan] {stats.missing}  "
        f"[cyan]Coverage:[/cyan] {stats.coverage:.1f}%  "
        f"[cyan]Can strengthen:[/cyan] {stats.can_strengthen_count}"
    )
    if result.truncated:
        console.print(
            f"[yellow]Showing the top {result.selection_budget} of "
            f"{stats.total_generated} combos (selection budget reached)[/yellow]"
        )

    combos = result.missing_combos if missing_only else result.combos
    combo_table = Table(title="Top Combos", show_header=True)
    combo_table.add_column("Combo", style="green")
    combo_table.add_column("Tier", style="cyan")
    combo_table.add_column("Priority", justify="right")
    combo_table.add_column("Data")
    combo_table.add_column("Suggestion", style="dim")
    for item in combos[:top]:
        bucket = get_priority_tier(item.priority.total)
        combo_table.add_row(
            item.text,
            item.tier.value,
            f"[{PRIORITY_STYLES[bucket]}]{item.priority.total}[/{PRIORITY_STYLES[bucket]}]",
            item.priority.data_quality.value,
            item.combo.suggestion or "",
        )
    console.print(combo_table)


def run_cli() -> None:
    """Entry point for the CLI."""
    main()


if __name__ == "__main__":
    run_cli()
