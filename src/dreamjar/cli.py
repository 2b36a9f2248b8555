"""Typer-based CLI for DreamJar."""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DreamJarConfig, _find_repo_root
from .errors import DreamJarError
from .ledger import read_audit_tail
from .models import ProposalStatus, WishStatus
from .service import DreamJarService

app = typer.Typer(
    name="dreamjar",
    help="DreamJar - staked wishes, community verification and impact treasury governance",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    db_path: str = typer.Option(
        None,
        "--db",
        help="Path to the DreamJar database (default: DREAMJAR_DB env, .dreamjar/config.toml or ./dreamjar.sqlite)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
):
    """Global options shared by every command."""
    _configure_logging(verbose)
    ctx.obj = DreamJarConfig.from_env(cli_db_path=db_path)


def _service(ctx: typer.Context) -> DreamJarService:
    config: DreamJarConfig = ctx.obj
    return DreamJarService.from_config(config)


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except DreamJarError as e:
        console.print(f"[red]Error ({type(e).__name__}): {e}[/red]")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def _parse_deadline(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        console.print(f"[red]Error: invalid deadline {value!r}; use ISO 8601 (e.g. 2026-12-31T23:59:59Z)[/red]")
        raise typer.Exit(code=1)


@app.command()
def init(
    ctx: typer.Context,
    write_config: bool = typer.Option(
        False,
        "--write-config",
        help="Write .dreamjar/config.toml at the repository root if missing",
    ),
):
    """Create the database schema (idempotent)."""
    config: DreamJarConfig = ctx.obj
    service = _service(ctx)
    console.print(f"[green]+[/green] Database ready: {service.store.db_path}")

    if write_config:
        config_file = _find_repo_root(Path.cwd()) / ".dreamjar" / "config.toml"
        if config_file.exists():
            console.print(f"[dim]Config already exists: {config_file}[/dim]")
        else:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            config_file.write_text(config.to_toml_str())
            console.print(f"[green]+[/green] Created config: {config_file}")


# -- users -----------------------------------------------------------------

user_app = typer.Typer(help="User commands")
app.add_typer(user_app, name="user")


@user_app.command("add")
def user_add(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    name: str = typer.Option(None, "--name", "-n", help="Display name"),
):
    """Register a user (or update their display name)."""
    with _cli_errors():
        user = _service(ctx).register_user(user_id, name)
    console.print(f"[green]+[/green] User {user.user_id} ({user.display_name or '-'})")


# -- wishes ----------------------------------------------------------------

wish_app = typer.Typer(help="Wish commands")
app.add_typer(wish_app, name="wish")


@wish_app.command("create")
def wish_create(
    ctx: typer.Context,
    creator: str = typer.Option(..., "--creator", help="Creator user id"),
    title: str = typer.Option(..., "--title", "-t", help="What you wish to achieve"),
    stake: int = typer.Option(..., "--stake", help="Stake amount in micro-units"),
    deadline: str = typer.Option(..., "--deadline", help="Deadline (ISO 8601)"),
    method: str = typer.Option(
        "media",
        "--method",
        "-m",
        help="Proof method: media, geolocation, external_activity, repository_commit, custom",
    ),
    impact_percent: int = typer.Option(0, "--impact-percent", help="Percent of pot routed to treasury on failure"),
    beneficiary: str = typer.Option(None, "--beneficiary", help="Impact beneficiary identifier"),
):
    """Create a new active wish."""
    with _cli_errors():
        wish = _service(ctx).create_wish(
            creator,
            title,
            stake,
            _parse_deadline(deadline),
            method,
            impact_on_fail_percent=impact_percent,
            impact_beneficiary=beneficiary,
        )
    console.print(f"[green]+[/green] Created wish [yellow]{wish.wish_id}[/yellow]")


@wish_app.command("show")
def wish_show(ctx: typer.Context, wish_id: str = typer.Argument(...)):
    """Show a wish with its proofs, votes and verification status."""
    with _cli_errors():
        details = _service(ctx).get_verification_details(wish_id)

    wish = details["wish"]
    result = details["verification"]
    console.print(f"[bold]{wish.title}[/bold] [dim]({wish.wish_id})[/dim]")
    console.print(f"  [dim]Creator:[/dim]   {wish.creator_id}")
    console.print(f"  [dim]Status:[/dim]    [magenta]{wish.status.value}[/magenta]")
    console.print(f"  [dim]Stake:[/dim]     {wish.stake_amount}")
    console.print(f"  [dim]Pledged:[/dim]   {wish.pledge_total} ({wish.pledge_count} pledge(s))")
    console.print(f"  [dim]Deadline:[/dim]  {wish.deadline.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    console.print(f"  [dim]Proof:[/dim]     {wish.proof_method.value} ({len(details['proofs'])} submitted)")
    console.print(
        f"  [dim]Votes:[/dim]     {result.yes_votes} yes / {result.no_votes} no "
        f"(quorum {'reached' if result.quorum_reached else 'not reached'}, decision {result.status})"
    )


@wish_app.command("list")
def wish_list(
    ctx: typer.Context,
    status: str = typer.Option(None, "--status", "-s", help="Filter by status"),
):
    """List wishes."""
    with _cli_errors():
        service = _service(ctx)
        wishes = service.wishes.list_wishes(WishStatus(status) if status else None)

    if not wishes:
        console.print("[dim]No wishes[/dim]")
        return

    table = Table(title=f"{len(wishes)} Wish(es)")
    table.add_column("Wish", style="yellow", no_wrap=True)
    table.add_column("Title")
    table.add_column("Status", style="magenta")
    table.add_column("Stake", justify="right")
    table.add_column("Pledged", justify="right", style="green")
    table.add_column("Deadline (UTC)", style="cyan")
    for w in wishes:
        table.add_row(
            w.wish_id[:8] + "...",
            w.title,
            w.status.value,
            str(w.stake_amount),
            str(w.pledge_total),
            w.deadline.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@wish_app.command("pledge")
def wish_pledge(
    ctx: typer.Context,
    wish_id: str = typer.Argument(...),
    supporter: str = typer.Option(..., "--supporter", help="Supporter user id"),
    amount: int = typer.Option(..., "--amount", help="Amount in micro-units"),
):
    """Pledge funds to a wish."""
    with _cli_errors():
        pledge = _service(ctx).pledge(wish_id, supporter, amount)
    console.print(f"[green]+[/green] Pledged {pledge.amount} to {wish_id} [dim]({pledge.pledge_id})[/dim]")


@wish_app.command("cancel")
def wish_cancel(
    ctx: typer.Context,
    wish_id: str = typer.Argument(...),
    actor: str = typer.Option(..., "--actor", help="Creator or admin user id"),
):
    """Cancel an active wish."""
    with _cli_errors():
        wish = _service(ctx).cancel_wish(wish_id, actor)
    console.print(f"[yellow]Wish {wish.wish_id} {wish.status.value}[/yellow]")


@wish_app.command("resolve")
def wish_resolve(ctx: typer.Context, wish_id: str = typer.Argument(...)):
    """Resolve a wish if its verification is decided."""
    with _cli_errors():
        outcome = _service(ctx).resolve(wish_id)

    if outcome.transitioned:
        console.print(f"[green]+[/green] Wish {wish_id} resolved: [magenta]{outcome.status.value}[/magenta]")
        if outcome.impact_amount:
            console.print(f"  Routed {outcome.impact_amount} to the impact treasury")
    elif outcome.decision == "pending":
        console.print(f"[dim]Wish {wish_id} is still pending ({outcome.status.value})[/dim]")
    else:
        console.print(f"[dim]Wish {wish_id} already {outcome.status.value}[/dim]")


# -- proofs ----------------------------------------------------------------

proof_app = typer.Typer(help="Proof commands")
app.add_typer(proof_app, name="proof")


@proof_app.command("submit")
def proof_submit(
    ctx: typer.Context,
    wish_id: str = typer.Argument(...),
    user: str = typer.Option(..., "--user", "-u", help="Submitting user id (must be the creator)"),
    payload: str = typer.Option(..., "--payload", "-p", help="Proof payload as a JSON object"),
    method: str = typer.Option(None, "--method", "-m", help="Proof method (default: the wish's method)"),
):
    """Submit proof of completion for a wish."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: payload is not valid JSON: {e}[/red]")
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        console.print("[red]Error: payload must be a JSON object[/red]")
        raise typer.Exit(code=1)
    if method:
        data["method"] = method

    with _cli_errors():
        receipt = _service(ctx).submit_proof(wish_id, user, data)
    console.print(f"[green]+[/green] Proof {receipt.proof_id} submitted; wish is {receipt.status.value}")


# -- votes -----------------------------------------------------------------

vote_app = typer.Typer(help="Verification vote commands")
app.add_typer(vote_app, name="vote")


@vote_app.command("cast")
def vote_cast(
    ctx: typer.Context,
    wish_id: str = typer.Argument(...),
    voter: str = typer.Option(..., "--voter", help="Voter user id"),
    choice: str = typer.Option(..., "--choice", "-c", help="yes or no"),
):
    """Cast a verification vote on a wish."""
    with _cli_errors():
        receipt = _service(ctx).cast_vote(wish_id, voter, choice)
    console.print(
        f"[green]+[/green] Vote {receipt.vote_id} recorded "
        f"({receipt.total_votes} total, decision {receipt.status})"
    )


@vote_app.command("status")
def vote_status(ctx: typer.Context, wish_id: str = typer.Argument(...)):
    """Show the verification tally for a wish."""
    with _cli_errors():
        result = _service(ctx).check_verification_status(wish_id)
    console.print_json(json.dumps(result.model_dump(mode="json")))


# -- governance ------------------------------------------------------------

proposal_app = typer.Typer(help="Impact treasury proposal commands")
app.add_typer(proposal_app, name="proposal")


@proposal_app.command("create")
def proposal_create(
    ctx: typer.Context,
    proposer: str = typer.Option(..., "--proposer", help="Proposer user id"),
    title: str = typer.Option(..., "--title", "-t"),
    amount: int = typer.Option(..., "--amount", help="Requested amount in micro-units"),
    beneficiary: str = typer.Option(..., "--beneficiary"),
    plan_ref: str = typer.Option(None, "--plan-ref", help="Reference to the impact plan document"),
    description: str = typer.Option("", "--description", "-d"),
):
    """Create a treasury spending proposal."""
    with _cli_errors():
        proposal_id = _service(ctx).create_proposal(
            proposer, title, amount, beneficiary, plan_ref=plan_ref, description=description
        )
    console.print(f"[green]+[/green] Created proposal [yellow]#{proposal_id}[/yellow]")


@proposal_app.command("vote")
def proposal_vote(
    ctx: typer.Context,
    proposal_id: int = typer.Argument(...),
    voter: str = typer.Option(..., "--voter"),
    in_favor: bool = typer.Option(..., "--for/--against", help="Vote for or against"),
):
    """Vote on a proposal."""
    with _cli_errors():
        service = _service(ctx)
        service.vote_on_proposal(proposal_id, voter, in_favor)
        proposal = service.get_proposal(proposal_id)
    console.print(
        f"[green]+[/green] Proposal #{proposal_id}: {proposal.votes_for} for / "
        f"{proposal.votes_against} against ({proposal.status.value})"
    )


@proposal_app.command("execute")
def proposal_execute(
    ctx: typer.Context,
    proposal_id: int = typer.Argument(...),
    executor: str = typer.Option(..., "--executor"),
):
    """Execute a passed proposal after its voting deadline."""
    with _cli_errors():
        _service(ctx).execute_proposal(proposal_id, executor)
    console.print(f"[green]+[/green] Proposal #{proposal_id} executed")


@proposal_app.command("list")
def proposal_list(
    ctx: typer.Context,
    status: str = typer.Option(None, "--status", "-s"),
    limit: int = typer.Option(20, "--limit"),
):
    """List proposals, newest first."""
    with _cli_errors():
        proposals = _service(ctx).governor.list_proposals(
            ProposalStatus(status) if status else None, limit=limit
        )

    if not proposals:
        console.print("[dim]No proposals[/dim]")
        return

    table = Table(title=f"{len(proposals)} Proposal(s)")
    table.add_column("#", style="yellow")
    table.add_column("Title")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("For/Against", justify="center")
    table.add_column("Status", style="magenta")
    table.add_column("Deadline (UTC)", style="cyan")
    for p in proposals:
        table.add_row(
            str(p.proposal_id),
            p.title,
            str(p.amount_requested),
            f"{p.votes_for}/{p.votes_against}",
            p.status.value,
            p.deadline.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


# -- treasury --------------------------------------------------------------

treasury_app = typer.Typer(help="Impact treasury commands")
app.add_typer(treasury_app, name="treasury")


@treasury_app.command("stats")
def treasury_stats(ctx: typer.Context):
    """Show impact treasury balances."""
    with _cli_errors():
        stats = _service(ctx).get_treasury_stats()

    table = Table(title="Impact Treasury")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.model_dump().items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@treasury_app.command("sweep")
def treasury_sweep(ctx: typer.Context):
    """Credit failed wishes that have not been credited yet."""
    with _cli_errors():
        credits = _service(ctx).treasury.process_failed_wishes()
    if not credits:
        console.print("[dim]Nothing to credit[/dim]")
        return
    for credit in credits:
        console.print(f"[green]+[/green] Credited {credit.amount} from wish {credit.wish_id}")


# -- rankings & maintenance ------------------------------------------------

@app.command()
def leaderboard(ctx: typer.Context):
    """Show the supporter leaderboard."""
    with _cli_errors():
        entries = _service(ctx).get_leaderboard()

    if not entries:
        console.print("[dim]No ranked users yet[/dim]")
        return

    table = Table(title="Leaderboard")
    table.add_column("Rank", style="yellow", justify="right")
    table.add_column("User")
    table.add_column("Total Pledged", justify="right", style="green")
    table.add_column("Dreams", justify="right")
    table.add_column("Success %", justify="right", style="magenta")
    for entry in entries:
        table.add_row(
            str(entry.rank),
            entry.user.display_name or entry.user.user_id,
            str(entry.total_pledged),
            str(entry.dreams_created),
            str(entry.success_rate),
        )
    console.print(table)


@app.command()
def reconcile(ctx: typer.Context):
    """Resolve past-deadline wishes and credit any uncredited failures."""
    with _cli_errors():
        report = _service(ctx).reconcile()

    for outcome in report.resolved:
        console.print(f"[green]+[/green] {outcome.wish_id}: {outcome.status.value}")
    for wish_id, error in report.errors.items():
        console.print(f"[red]x {wish_id}: {error}[/red]")
    console.print(
        f"[dim]Resolved {len(report.resolved)}, skipped {len(report.skipped)}, "
        f"credited {len(report.credits)}[/dim]"
    )


audit_app = typer.Typer(help="Audit ledger commands")
app.add_typer(audit_app, name="audit")


@audit_app.command("tail")
def audit_tail(
    ctx: typer.Context,
    n: int = typer.Option(20, "--n", help="Number of recent events to display"),
    log_path: Optional[str] = typer.Option(None, "--log", help="Audit log path (default: configured)"),
    event_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only show events of this type"),
):
    """Display the last N audit events."""
    config: DreamJarConfig = ctx.obj
    path = Path(log_path) if log_path else config.audit_log_path
    if path is None:
        console.print("[red]Error: no audit log configured (set DREAMJAR_AUDIT_LOG or pass --log)[/red]")
        raise typer.Exit(code=1)

    events = read_audit_tail(path, n=n, event_type=event_type)
    if not events:
        console.print("[dim]No events in audit log[/dim]")
        return

    table = Table(title=f"Last {len(events)} Audit Event(s)")
    table.add_column("Timestamp (UTC)", style="cyan", no_wrap=True)
    table.add_column("Event Type", style="magenta")
    table.add_column("Subject", style="yellow")
    table.add_column("Payload", style="dim")
    for event in events:
        payload_str = str(event.payload)
        if len(payload_str) > 60:
            payload_str = payload_str[:57] + "..."
        subject = event.subject_id[:8] + "..." if event.subject_id and len(event.subject_id) > 11 else (event.subject_id or "-")
        table.add_row(event.ts.strftime("%Y-%m-%d %H:%M:%S"), event.event_type, subject, payload_str)
    console.print(table)


@app.command()
def version():
    """Show DreamJar version."""
    from . import __version__
    console.print(f"DreamJar v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
