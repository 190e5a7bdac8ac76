import asyncio

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from scrapeview.api.client import ApiClient
from scrapeview.api.schemas import ApiResponse
from scrapeview.config import get_config
from scrapeview.constants import MAX_SCRAPE_DEPTH, MIN_SCRAPE_DEPTH, SORT_FIELDS, SORT_ORDERS
from scrapeview.errors import ApiError
from scrapeview.events import JobCompleted
from scrapeview.ingest.pages import extract_page
from scrapeview.ingest.status import parse_job_status
from scrapeview.jobs.poller import PollState, StopReason
from scrapeview.logging import configure_logging
from scrapeview.models import Item, Page
from scrapeview.session import ScrapeSession

console = Console()


def _fail(response: ApiResponse) -> None:
    console.print(f"[red]Error:[/red] {response.message or 'Request failed'}")
    raise SystemExit(1)


def _items_table(items: list[Item] | tuple[Item, ...], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Price", justify="right")
    table.add_column("Scraped", style="dim")
    table.add_column("URL", style="blue")
    for item in items:
        price = f"${item.price:.2f}" if item.price > 0 else ""
        table.add_row(item.id, item.title, price, item.scraped_at.strftime("%Y-%m-%d %H:%M"), item.url)
    return table


def _print_page(page: Page, title: str) -> None:
    if not page.items:
        console.print("No data available.")
        return
    console.print(_items_table(page.items, title))
    console.print(f"[dim]Showing {page.offset + 1}-{page.offset + len(page.items)} of {page.total} items[/dim]")


@click.group()
@click.pass_context
def main(ctx):
    """scrapeview - client for the scrape-n-serve backend"""
    ctx.ensure_object(dict)
    try:
        config = get_config()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise SystemExit(1)
    configure_logging(config.log_level)
    ctx.obj["config"] = config


@main.command()
@click.argument("url")
@click.option(
    "--depth",
    "max_depth",
    type=click.IntRange(MIN_SCRAPE_DEPTH, MAX_SCRAPE_DEPTH),
    default=None,
    help="Maximum crawl depth",
)
@click.option("--wait/--no-wait", default=True, help="Poll until the job finishes, then list the results")
@click.pass_context
def scrape(ctx, url: str, max_depth: int | None, wait: bool):
    """Start scraping URL."""
    asyncio.run(_scrape(ctx.obj["config"], url, max_depth, wait))


async def _scrape(config, url: str, max_depth: int | None, wait: bool):
    async with ApiClient(config) as client:
        session = ScrapeSession(client)

        async def on_completed(event: JobCompleted) -> None:
            console.print(f"[green]Scraping completed[/green] at {event.observed_at:%H:%M:%S}")

        session.channel.subscribe(JobCompleted, on_completed)
        try:
            response = await session.start_job(url, max_depth)
            if not response.ok:
                _fail(response)
            console.print(f"[bold]Scraping started[/bold] for [cyan]{url}[/cyan]")
            if not wait:
                return

            with console.status("Scraping in progress..."):
                state = await session.wait_for_job()

            if state != PollState.COMPLETED:
                reason = session.poller.stop_reason if session.poller else None
                if reason == StopReason.NEVER_RUNNING:
                    console.print("[yellow]Job was not observed running.[/yellow] Run `scrapeview list` to see results.")
                else:
                    console.print("[yellow]Gave up waiting for the job to finish.[/yellow] Check `scrapeview status`.")
                raise SystemExit(1)

            store = session.store
            if store.error:
                console.print(f"[red]Error:[/red] {store.error.message}")
                raise SystemExit(1)
            if store.items:
                console.print(_items_table(store.items, "Scraped Data"))
            console.print(f"[dim]Showing {len(store.items)} of {store.total} items[/dim]")
        finally:
            await session.aclose()


@main.command()
@click.pass_context
def status(ctx):
    """Show whether a scrape job is running."""
    asyncio.run(_status(ctx.obj["config"]))


async def _status(config):
    async with ApiClient(config) as client:
        response = await client.get_status()
    if not response.ok:
        _fail(response)
    try:
        job = parse_job_status(response.payload)
    except ApiError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)
    colour = "yellow" if job.running else "green"
    console.print(f"Job state: [{colour}]{job.state}[/{colour}] (as of {job.observed_at:%Y-%m-%d %H:%M:%S})")


@main.command(name="list")
@click.option("--limit", type=click.IntRange(1, 1000), default=None, help="Items per page")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Items to skip")
@click.option("--sort", type=click.Choice(sorted(SORT_FIELDS)), default=None)
@click.option("--order", type=click.Choice(sorted(SORT_ORDERS)), default=None)
@click.pass_context
def list_items(ctx, limit: int | None, offset: int, sort: str | None, order: str | None):
    """List scraped items."""
    config = ctx.obj["config"]
    asyncio.run(_list(config, limit or config.page_limit, offset, sort, order))


async def _list(config, limit: int, offset: int, sort: str | None, order: str | None):
    async with ApiClient(config) as client:
        response = await client.get_data(limit, offset, sort, order)
    if not response.ok:
        _fail(response)
    page = extract_page(response.payload, limit, offset)
    if page.error:
        console.print("[red]Error:[/red] Invalid data format received from server")
        raise SystemExit(1)
    _print_page(page, "Scraped Data")


@main.command()
@click.argument("query")
@click.option("--limit", type=click.IntRange(1, 1000), default=None, help="Items per page")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Items to skip")
@click.pass_context
def search(ctx, query: str, limit: int | None, offset: int):
    """Search scraped items by title or description."""
    asyncio.run(_search(ctx.obj["config"], query, limit, offset))


async def _search(config, query: str, limit: int | None, offset: int):
    async with ApiClient(config) as client:
        session = ScrapeSession(client)
        if limit:
            session.limit = limit
        result = await session.search(query, offset)
    if isinstance(result, ApiResponse):
        _fail(result)
    _print_page(result, f"Results for {query!r}")


@main.command()
@click.argument("item_id")
@click.pass_context
def show(ctx, item_id: str):
    """Show one scraped item."""
    asyncio.run(_show(ctx.obj["config"], item_id))


async def _show(config, item_id: str):
    async with ApiClient(config) as client:
        result = await ScrapeSession(client).get_item(item_id)
    if isinstance(result, ApiResponse):
        _fail(result)

    console.print(f"[bold]{result.title}[/bold]")
    console.print(f"Scraped: {result.scraped_at:%Y-%m-%d %H:%M:%S}")
    if result.price > 0:
        console.print(f"Price: ${result.price:.2f}")
    if result.description:
        console.print(result.description)
    console.print(f"Source: [blue]{result.url}[/blue]")
    if result.image_url:
        console.print(f"Image: {result.image_url}")
    if result.metadata:
        console.print()
        console.print("[bold]Additional Information[/bold]")
        for key, value in result.metadata.items():
            console.print(f"  {key}: {value}")


@main.command()
@click.pass_context
def stats(ctx):
    """Show totals and the time of the latest scrape."""
    asyncio.run(_stats(ctx.obj["config"]))


async def _stats(config):
    async with ApiClient(config) as client:
        result = await ScrapeSession(client).stats()
    if isinstance(result, ApiResponse):
        _fail(result)
    latest = f"{result.latest_scrape:%Y-%m-%d %H:%M:%S}" if result.latest_scrape else "Never"
    console.print(f"[bold]Total Items:[/bold] {result.total_items} | [bold]Latest Scrape:[/bold] {latest}")


@main.command()
@click.pass_context
def health(ctx):
    """Check that the backend is up."""
    asyncio.run(_health(ctx.obj["config"]))


async def _health(config):
    async with ApiClient(config) as client:
        response = await client.health()
    if not response.ok:
        _fail(response)
    payload = response.payload if isinstance(response.payload, dict) else {}
    if payload.get("status") != "up":
        console.print("[red]API is not responding correctly.[/red]")
        raise SystemExit(1)
    console.print(f"[green]API is up[/green] (server time: {payload.get('time', 'unknown')})")


if __name__ == "__main__":
    main()
