"""CLI interface for the crawl scheduler."""

import asyncio
from collections import Counter
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .cache import BaseCache, MemoryCache, RedisCache
from .config import CrawlerSettings
from .crawler import Crawler
from .devices import DEVICES
from .events import CrawlerEvent
from .exceptions import ExporterError
from .exporter import BaseExporter, CSVExporter, JSONLineExporter
from .logging import configure_logging

app = typer.Typer(
    name="crawl-scheduler",
    help="Bounded-concurrency web crawler",
    add_completion=False,
)
console = Console()

SUMMARY_EVENTS = {
    CrawlerEvent.REQUEST_FINISHED: "finished",
    CrawlerEvent.REQUEST_FAILED: "failed",
    CrawlerEvent.REQUEST_SKIPPED: "skipped",
    CrawlerEvent.REQUEST_DISALLOWED: "disallowed",
    CrawlerEvent.REQUEST_RETRIED: "retried",
}


def get_settings() -> CrawlerSettings:
    """Load configuration from the environment and ``.env``."""
    from dotenv import load_dotenv

    load_dotenv()
    return CrawlerSettings()


def build_exporter(output: Path | None, output_format: str, fields: list[str] | None) -> BaseExporter | None:
    if output is None:
        return None
    if output_format == "csv":
        return CSVExporter(output, fields=fields)
    if output_format == "jsonl":
        return JSONLineExporter(output, fields=fields)
    raise typer.BadParameter(f"Unknown format: {output_format}", param_hint="--format")


def build_cache(redis_url: str | None) -> BaseCache:
    if redis_url:
        return RedisCache(redis_url)
    return MemoryCache()


@app.command()
def crawl(
    urls: list[str] = typer.Argument(..., help="Start URLs"),
    max_depth: int = typer.Option(None, "--max-depth", "-d", help="Follow links this many levels deep"),
    concurrency: int = typer.Option(None, "--concurrency", "-c", help="Requests in flight at once"),
    max_request: int = typer.Option(None, "--max-request", "-n", help="Stop after this many requests"),
    retry_count: int = typer.Option(None, "--retry-count", help="Retries per failing request"),
    retry_delay: float = typer.Option(None, "--retry-delay", help="Seconds between retries"),
    delay: float = typer.Option(0.0, "--delay", help="Seconds to wait after each request"),
    depth_first: bool = typer.Option(True, "--depth-first/--breadth-first", help="Traversal order"),
    obey_robots: bool = typer.Option(True, "--obey-robots/--ignore-robots", help="Respect robots.txt"),
    skip_duplicates: bool = typer.Option(True, "--skip-duplicates/--allow-duplicates", help="Dedup requests"),
    allowed_domain: list[str] = typer.Option(None, "--allow", help="Allowed domain or glob (repeatable)"),
    denied_domain: list[str] = typer.Option(None, "--deny", help="Denied domain or glob (repeatable)"),
    device: str = typer.Option(None, "--device", help="Emulated device name"),
    output: Path = typer.Option(None, "--output", "-o", help="Output file for results"),
    output_format: str = typer.Option("jsonl", "--format", "-f", help="jsonl or csv"),
    fields: list[str] = typer.Option(None, "--field", help="Exported field (repeatable, dotted paths)"),
    redis_url: str = typer.Option(None, "--redis-url", help="Share the queue through Redis"),
    queue_name: str = typer.Option(None, "--queue-name", help="Queue name in the store"),
    persist_cache: bool = typer.Option(False, "--persist-cache", help="Keep queue and dedup records on exit"),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    json_logs: bool = typer.Option(True, "--json-logs/--console-logs", help="Log format"),
):
    """Crawl from the given URLs until the queue runs dry."""
    settings = get_settings()
    configure_logging((log_level or settings.log_level).upper(), json_output=json_logs)

    if delay > 0 and concurrency not in (None, 1):
        console.print("[red]Error: --delay requires --concurrency 1.[/red]")
        raise typer.Exit(1)

    try:
        exporter = build_exporter(output, output_format, fields or None)
    except ExporterError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)
    counts: Counter[str] = Counter()

    async def run() -> int:
        crawler = await Crawler.launch(
            cache=build_cache(redis_url or settings.redis_url),
            exporter=exporter,
            max_concurrency=1 if delay > 0 else (concurrency or settings.max_concurrency),
            max_request=max_request if max_request is not None else settings.max_request,
            persist_cache=persist_cache,
            queue_name=queue_name or settings.queue_name,
            max_depth=max_depth or settings.max_depth,
            retry_count=retry_count if retry_count is not None else settings.retry_count,
            retry_delay=retry_delay if retry_delay is not None else settings.retry_delay,
            timeout=settings.timeout,
            delay=delay,
            depth_priority=depth_first,
            obey_robots_txt=obey_robots,
            skip_duplicates=skip_duplicates,
            allowed_domains=allowed_domain or None,
            denied_domains=denied_domain or None,
            device=device,
        )
        for event, label in SUMMARY_EVENTS.items():
            crawler.on(event, lambda *_args, label=label: counts.update([label]))
        try:
            await crawler.queue(urls)
            await crawler.on_idle()
            return crawler.requested_count()
        finally:
            await crawler.close()

    try:
        requested = asyncio.run(run())
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    table = Table(title="Crawl Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("requested", str(requested))
    for label in ("finished", "failed", "retried", "skipped", "disallowed"):
        table.add_row(label, str(counts[label]))
    console.print(table)
    if output:
        console.print(f"[green]Results written to {output}[/green]")


@app.command()
def devices():
    """List device profiles usable with --device."""
    table = Table(title="Devices")
    table.add_column("Name", style="cyan")
    table.add_column("Viewport")
    table.add_column("Mobile")
    table.add_column("User agent", overflow="fold")
    for profile in DEVICES.values():
        viewport = profile.viewport
        table.add_row(
            profile.name,
            f"{viewport.width}x{viewport.height}@{viewport.device_scale_factor:g}",
            "yes" if viewport.is_mobile else "no",
            profile.user_agent,
        )
    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
