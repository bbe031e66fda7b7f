"""
CLI interface for AI Credit Router.

Provides command-line access to routing, credit calculation and the ledger.
"""

import logging
import sqlite3
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ai_credit_router.config.loader import load_router_config
from ai_credit_router.core.credits import calculate_credit_cost
from ai_credit_router.core.errors import RouterError
from ai_credit_router.core.routing import Provider, select_route
from ai_credit_router.core.token_counter import TokenUsage
from ai_credit_router.sdk.metered import MeteredRouter
from ai_credit_router.sdk.router import AIRouter, RouteOptions
from ai_credit_router.storage.repository import (
    UsageRepository,
    get_credit_balance,
    grant_monthly_credits,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to YAML router config")
DB_OPTION = typer.Option(None, "--db", help="Ledger database path (overrides config)")


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _db_path(config_path: Optional[str], db: Optional[str]) -> str:
    return db or load_router_config(config_path).db_path


def _require_schema(error: sqlite3.OperationalError) -> None:
    if "no such table" in str(error).lower():
        console.print("\n[bold yellow]Ledger database is not initialized[/]")
        console.print("Run `ai-credit-router init` (with the same --db or --config) and try again.\n")
        sys.exit(EXIT_CODE_FAIL)
    raise error


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log routing decisions"),
):
    """AI Credit Router CLI."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if ctx.invoked_subcommand is None:
        console.print("AI Credit Router - Use --help to see available commands")


@app.command()
def init(config: Optional[str] = CONFIG_OPTION, db: Optional[str] = DB_OPTION):
    """Initialize the usage log and credit ledger database."""
    try:
        initialize_schema(_db_path(config, db))
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def route(
    task: str = typer.Argument(..., help="Task category, e.g. marketResearch"),
    tier: str = typer.Option("free", "--tier", "-t", help="Subscription tier"),
    anthropic: bool = typer.Option(
        False,
        "--anthropic/--no-anthropic",
        help="Assume the Anthropic credential is configured"
    ),
):
    """Show which provider and model a task would be routed to."""
    try:
        decision = select_route(task, tier, secondary_available=anthropic)
    except RouterError as e:
        _fail(str(e))

    console.print(f"[bold]Provider:[/bold] {decision.provider.value}")
    console.print(f"[bold]Model:[/bold] {decision.model}")
    console.print(f"Web search: {'yes' if decision.web_search else 'no'}")
    console.print(f"Extended thinking: {'yes' if decision.extended_thinking else 'no'}")


@app.command()
def cost(
    provider: str = typer.Argument(..., help="Provider tag, e.g. openai-mini"),
    model: str = typer.Argument(..., help="Model identifier, e.g. gpt-4o-mini"),
    input_tokens: int = typer.Option(0, "--input", "-i", help="Input tokens"),
    output_tokens: int = typer.Option(0, "--output", "-o", help="Output tokens"),
    thinking_tokens: int = typer.Option(0, "--thinking", help="Thinking tokens"),
    web_search: bool = typer.Option(False, "--web-search", help="Web search was enabled"),
    extended_thinking: bool = typer.Option(False, "--extended-thinking", help="Extended thinking was enabled"),
):
    """Calculate the credit cost of a call."""
    try:
        credits = calculate_credit_cost(
            provider,
            model,
            TokenUsage(input_tokens, output_tokens, thinking_tokens),
            web_search=web_search,
            extended_thinking=extended_thinking
        )
    except RouterError as e:
        _fail(str(e))

    console.print(f"[bold]Credit cost:[/bold] {credits}")


@app.command()
def ask(
    task: str = typer.Argument(..., help="Task category"),
    content: str = typer.Argument(..., help="Prompt content"),
    tier: str = typer.Option("free", "--tier", "-t", help="Subscription tier (ignored with --user)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Bill this user's credit balance"),
    system_prompt: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt"),
    temperature: Optional[float] = typer.Option(None, "--temperature", help="Sampling temperature (0-1)"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Maximum output tokens"),
    config: Optional[str] = CONFIG_OPTION,
    db: Optional[str] = DB_OPTION,
):
    """Route a prompt to the selected AI provider and print the answer."""
    try:
        router_config = load_router_config(config)
        router = AIRouter(router_config)
        options = RouteOptions(
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens
        )

        if user:
            metered = MeteredRouter(router, db_path=db or router_config.db_path)
            outcome = metered.invoke(user, task, content, options)
            result = outcome.result
            credits = outcome.credit_cost
        else:
            result = router.invoke(task, content, tier, options)
            credits = result.usage.credit_cost
    except (RouterError, LookupError) as e:
        _fail(str(e))
    except sqlite3.OperationalError as e:
        _require_schema(e)

    console.print(result.content, markup=False)
    console.print(
        f"\n[dim]{result.usage.provider}:{result.usage.model} | "
        f"in={result.usage.input_tokens} out={result.usage.output_tokens} | "
        f"credits={credits}[/]"
    )
    if user:
        console.print(f"[dim]Credits remaining: {outcome.credits_remaining}[/]")


@app.command()
def grant(
    user: str = typer.Argument(..., help="User identifier"),
    tier: str = typer.Option("free", "--tier", "-t", help="Subscription tier"),
    config: Optional[str] = CONFIG_OPTION,
    db: Optional[str] = DB_OPTION,
):
    """Reset a user's balance to their tier's monthly allowance."""
    try:
        balance = grant_monthly_credits(user, tier, _db_path(config, db))
    except RouterError as e:
        _fail(str(e))
    except sqlite3.OperationalError as e:
        _require_schema(e)

    console.print(
        f"[green]✓[/] {balance.user_id} ({balance.tier}): "
        f"{balance.credits_remaining} credits until {balance.credits_reset_date:%Y-%m-%d}"
    )


@app.command()
def balance(
    user: str = typer.Argument(..., help="User identifier"),
    config: Optional[str] = CONFIG_OPTION,
    db: Optional[str] = DB_OPTION,
):
    """Show a user's credit balance."""
    try:
        current = get_credit_balance(user, _db_path(config, db))
    except sqlite3.OperationalError as e:
        _require_schema(e)
    if current is None:
        _fail(f"No credit balance for user: {user}")

    console.print(f"[bold]User:[/bold] {current.user_id}")
    console.print(f"[bold]Tier:[/bold] {current.tier}")
    console.print(f"[bold]Credits remaining:[/bold] {current.credits_remaining}")
    console.print(f"Next reset: {current.credits_reset_date:%Y-%m-%d}")


@app.command()
def usage(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Filter by user"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by provider tag"),
    days: int = typer.Option(30, "--days", "-d", help="Days to look back"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum records to list"),
    config: Optional[str] = CONFIG_OPTION,
    db: Optional[str] = DB_OPTION,
):
    """List recent usage records and totals."""
    if provider is not None and provider not in {p.value for p in Provider}:
        _fail(f"Unknown provider: {provider}")

    repository = UsageRepository(_db_path(config, db))
    try:
        records = repository.get_recent_records(user_id=user, provider=provider, days=days, limit=limit)
        stats = repository.get_usage_stats(user_id=user, provider=provider, days=days)
    except sqlite3.OperationalError as e:
        _require_schema(e)

    if not records:
        console.print("\n[bold yellow]No AI usage recorded yet[/]\n")
        return

    table = Table(title="AI Usage")
    table.add_column("Time")
    table.add_column("User")
    table.add_column("Task")
    table.add_column("Route")
    table.add_column("Tokens", justify="right")
    table.add_column("Credits", justify="right")
    for record in records:
        flags = []
        if record.web_search:
            flags.append("search")
        if record.extended_thinking:
            flags.append("thinking")
        route_label = f"{record.provider}:{record.model}"
        if flags:
            route_label += f" ({', '.join(flags)})"
        table.add_row(
            f"{record.timestamp:%Y-%m-%d %H:%M}",
            record.user_id,
            record.task,
            route_label,
            str(record.total_tokens),
            str(record.credit_cost)
        )
    console.print(table)
    console.print(
        f"Total: {stats['total_requests']} requests, "
        f"{stats['total_credits']} credits, {stats['total_tokens']} tokens"
    )


if __name__ == "__main__":
    app()
