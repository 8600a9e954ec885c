"""
Claim Reserves CLI

Command-line interface for coverage reserve adjustment.
Provides commands for loading master data, inspecting balances and ledgers,
and adjusting reserves.

Usage:
    claim-reserves init --db reserves.db
    claim-reserves load --file seed.json
    claim-reserves coverages --claim 1/13/20045
    claim-reserves balance --claim 1/13/20045 --coverage 3-003
    claim-reserves adjust --claim 1/13/20045 --set 3-003=1900 --set 3-004=0 --confirm-zero
    claim-reserves movements --claim 1/13/20045
    claim-reserves entries --claim 1/13/20045

The database path comes from --db or the CLAIM_RESERVES_DB environment
variable.
"""

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from claim_reserves.kernel.errors import NotFoundError, PersistenceFailure
from claim_reserves.kernel.logging import configure_logging, is_production
from claim_reserves.reserve.models import AdjustmentRequest, ValidationState
from claim_reserves.reserves import ClaimReserves

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=is_production(), log_level="INFO")

app = typer.Typer(
    name="claim-reserves",
    help="Claim Reserves - coverage reserve adjustment with shared-ceiling reallocation",
    add_completion=False,
)

DEFAULT_DB = Path(".claim_reserves.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", envvar="CLAIM_RESERVES_DB", help="Database path"),
]
ClaimOption = Annotated[str, typer.Option("--claim", help="Claim id (branch/line/number)")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_reserves(db_path: Optional[Path] = None, analyst: Optional[str] = None) -> ClaimReserves:
    """Get ClaimReserves instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'claim-reserves init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return ClaimReserves(str(db), analyst=analyst)


def _fail(message: str, code: int = 1) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code)


def _parse_assignment(text: str) -> AdjustmentRequest:
    coverage_id, sep, amount = text.partition("=")
    if not sep:
        raise typer.BadParameter(f"Expected COVERAGE=AMOUNT, got {text!r}")
    try:
        return AdjustmentRequest.for_coverage(coverage_id, amount.strip() or None)
    except (ValueError, ArithmeticError) as e:
        raise typer.BadParameter(f"Invalid adjustment {text!r}: {e}") from e


@app.command()
def init(
    db: DbOption = None,
) -> None:
    """Initialize a new reserves database"""
    db = db or DEFAULT_DB
    if db.exists():
        raise _fail(f"Database already exists: {db}")

    ClaimReserves(str(db))
    typer.echo(f"✓ Initialized reserves database: {db}")


@app.command()
def load(
    file: Annotated[Path, typer.Option("--file", help="Seed document (JSON)")],
    db: DbOption = None,
) -> None:
    """Load claims, coverages, payments, limits and accounting components"""
    reserves = get_reserves(db)
    if not file.exists():
        raise _fail(f"Seed file not found: {file}")

    try:
        summary = reserves.load(json.loads(file.read_text()))
    except (json.JSONDecodeError, ValidationError) as e:
        raise _fail(f"Invalid seed document: {e}") from e
    except NotFoundError as e:
        raise _fail(str(e)) from e

    typer.echo(f"✓ Loaded seed: {file}")
    typer.echo(f"  Claims: {summary.claims}")
    typer.echo(f"  Coverages: {summary.coverages}")
    typer.echo(f"  Payments: {summary.payments}")
    typer.echo(f"  Combined limits: {summary.combined_limits}")
    typer.echo(f"  Accounting components: {summary.accounting_components}")


@app.command()
def coverages(
    claim: ClaimOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the coverages of a claim"""
    reserves = get_reserves(db)
    try:
        items = reserves.list_coverages(claim)
    except NotFoundError as e:
        raise _fail(str(e)) from e

    if json_output:
        typer.echo(json.dumps([c.model_dump(mode="json") for c in items], indent=2))
        return

    if not items:
        typer.echo(f"No coverages on claim {claim}")
        return

    typer.echo(f"Coverages of claim {claim} ({len(items)}):")
    for c in items:
        rank = f" rank {c.priority}" if c.priority is not None else ""
        shared = " [shared]" if c.shared_limit else ""
        typer.echo(
            f"  {c.coverage_id}: balance {c.current_balance}, "
            f"sum insured {c.sum_insured}{rank}{shared}"
        )


@app.command()
def balance(
    claim: ClaimOption,
    coverage: Annotated[str, typer.Option("--coverage", help="Coverage id (line-code)")],
    db: DbOption = None,
) -> None:
    """Recompute a coverage's balance from its movements and payments"""
    reserves = get_reserves(db)
    try:
        amount = reserves.balance(claim, coverage)
    except NotFoundError as e:
        raise _fail(str(e)) from e
    typer.echo(f"{claim} {coverage}: {amount}")


@app.command()
def ceiling(
    claim: ClaimOption,
    db: DbOption = None,
) -> None:
    """Show the shared ceiling of the claim's policy"""
    reserves = get_reserves(db)
    try:
        context = reserves.shared_ceiling(claim)
    except NotFoundError as e:
        raise _fail(str(e)) from e
    typer.echo(f"Shared ceiling for claim {claim}: {context.ceiling}")
    typer.echo(f"  Sum insured: {context.total_sum_insured}")
    typer.echo(f"  Payments: {context.total_payments}")
    typer.echo(f"  Pending reserve: {context.pending_reserve}")


@app.command()
def adjust(
    claim: ClaimOption,
    assignments: Annotated[
        list[str],
        typer.Option("--set", help="COVERAGE=AMOUNT; repeat for a batch"),
    ],
    confirm_zero: Annotated[
        bool,
        typer.Option("--confirm-zero", help="Confirm zero balances in this batch"),
    ] = False,
    analyst: Annotated[
        Optional[str],
        typer.Option("--analyst", help="User stamped on the movements"),
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Adjust the reserve of one or more coverages in a single batch"""
    reserves = get_reserves(db, analyst=analyst)
    requests = [
        r.model_copy(update={"confirm_zero": confirm_zero})
        for r in (_parse_assignment(a) for a in assignments)
    ]

    try:
        result = reserves.adjust(claim, requests)
    except ValidationError as e:
        raise _fail(f"Invalid batch: {e}") from e
    except NotFoundError as e:
        raise _fail(str(e)) from e
    except PersistenceFailure as e:
        raise _fail(str(e), code=2) from e

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        typer.echo(f"Claim {result.claim_id}: {result.summary}")
        for o in result.outcomes:
            mark = "✓" if o.accepted else "✗"
            line = f"  {mark} {o.coverage_id} {o.state.value}"
            if o.accepted:
                line += f" delta {o.delta}, balance {o.previous_balance} -> {o.new_balance}"
            if o.movement_number is not None:
                line += f" (movement {o.movement_number})"
            typer.echo(line)
            if o.message:
                typer.echo(f"      {o.message}")
        if result.accounting_entry_numbers:
            entries = ", ".join(str(n) for n in result.accounting_entry_numbers)
            typer.echo(f"  Accounting entries: {entries}")

    rejected = [
        o for o in result.outcomes if o.state == ValidationState.REJECTED
    ]
    if rejected:
        raise typer.Exit(3)


@app.command()
def movements(
    claim: ClaimOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the movements of a claim"""
    reserves = get_reserves(db)
    items = reserves.list_movements(claim)

    if json_output:
        typer.echo(json.dumps([m.model_dump(mode="json") for m in items], indent=2))
        return

    if not items:
        typer.echo(f"No movements on claim {claim}")
        return

    typer.echo(f"Movements of claim {claim} ({len(items)}):")
    for m in items:
        notice = f" [{m.accepted_notice}]" if m.accepted_notice else ""
        typer.echo(
            f"  #{m.movement_number} {m.movement_date} {m.movement_type} "
            f"{m.accounting_line}-{m.coverage_code} {m.amount} {m.currency}{notice}"
        )


@app.command()
def entries(
    claim: ClaimOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the accounting entries of a claim"""
    reserves = get_reserves(db)
    items = reserves.list_accounting_entries(claim)

    if json_output:
        typer.echo(json.dumps([e.model_dump(mode="json") for e in items], indent=2))
        return

    if not items:
        typer.echo(f"No accounting entries on claim {claim}")
        return

    typer.echo(f"Accounting entries of claim {claim} ({len(items)} lines):")
    for e in items:
        typer.echo(
            f"  {e.entry_number}.{e.line_number} movement #{e.movement_number} "
            f"{e.ledger_account} D {e.debit} H {e.credit}"
        )


if __name__ == "__main__":
    app()
