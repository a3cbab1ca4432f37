#!/usr/bin/env python3
"""
tokenledger CLI

Operator tooling around the ledger engines:
- Airdrop distribution files (build, proof lookup, verification)
- Vesting and staking accrual previews
- Effective configuration
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tokenledger.blockchain.accrual import VestingWindow, staking_pending, vesting_rate, vesting_releasable
from tokenledger.blockchain.distribution import (
    build_distribution,
    load_csv,
    load_distribution,
    save_distribution,
    verify_entry,
)
from tokenledger.core.config_manager import ConfigManager
from tokenledger.core.input_validation_schemas import VestingPreviewInput
from tokenledger.core.ledger_exceptions import LedgerError
from tokenledger.core.logging_config import configure_from

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _emit(ctx: click.Context, payload: dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return
    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


@click.group()
@click.option("--environment", default=None, help="Config environment (development/staging/production)")
@click.option("--config-dir", type=click.Path(file_okay=False), default=None, help="Directory with config YAML")
@click.option("--json-output", "json_output", is_flag=True, help="Emit raw JSON")
@click.pass_context
def cli(ctx: click.Context, environment: str | None, config_dir: str | None, json_output: bool):
    """tokenledger - entitlement & accrual ledger tooling."""
    ctx.ensure_object(dict)
    try:
        config = ConfigManager(environment=environment, config_dir=config_dir)
    except LedgerError as exc:
        _cli_fail(exc)
    configure_from(config.logging, environment=config.environment.value)
    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


# ==================== Merkle ====================


@cli.group()
def merkle():
    """Airdrop distribution files."""
    pass


@merkle.command("build")
@click.option("--csv", "csv_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--out", "out_path", default="merkle.json", type=click.Path(dir_okay=False))
@click.pass_context
def merkle_build(ctx: click.Context, csv_path: str, out_path: str):
    """
    Build merkle.json from an address,amount CSV.

    Example:
        tokenledger merkle build --csv allocations.csv --out merkle.json
    """
    try:
        distribution = build_distribution(load_csv(Path(csv_path)))
        save_distribution(distribution, Path(out_path))
    except (LedgerError, OSError) as exc:
        _cli_fail(exc)
    _emit(
        ctx,
        {
            "merkle_root": distribution.merkle_root,
            "token_total": distribution.token_total,
            "claims": len(distribution.claims),
            "output": out_path,
        },
        "Distribution Built",
    )


@merkle.command("proof")
@click.option("--json", "json_path", default="merkle.json", type=click.Path(exists=True, dir_okay=False))
@click.option("--address", required=True)
@click.pass_context
def merkle_proof(ctx: click.Context, json_path: str, address: str):
    """Print the claim entry (index, amount, proof) for an address."""
    try:
        distribution = load_distribution(Path(json_path))
    except (LedgerError, OSError) as exc:
        _cli_fail(exc)
    entry = distribution.claims.get(address.lower())
    if entry is None:
        _cli_fail(click.ClickException(f"Address {address} not found in claims"))
    click.echo(json.dumps({"address": address.lower(), **entry.model_dump()}, indent=2))


@merkle.command("verify")
@click.option("--json", "json_path", default="merkle.json", type=click.Path(exists=True, dir_okay=False))
@click.option("--address", required=True)
@click.pass_context
def merkle_verify(ctx: click.Context, json_path: str, address: str):
    """Check an address's proof against the file's root."""
    try:
        distribution = load_distribution(Path(json_path))
        valid = verify_entry(distribution, address)
    except (LedgerError, OSError) as exc:
        _cli_fail(exc)
    _emit(ctx, {"address": address.lower(), "valid": valid}, "Proof Verification")
    if not valid:
        sys.exit(1)


# ==================== Previews ====================


@cli.group()
def vesting():
    """Vesting schedule tools."""
    pass


@vesting.command("preview")
@click.option("--principal", required=True, type=int)
@click.option("--at", "now", required=True, type=int, help="Timestamp to evaluate at")
@click.option("--drawn", default=0, type=int)
@click.option("--last-drawn-at", default=None, type=int)
@click.option("--start", default=None, type=int, help="Defaults to vesting.start")
@click.option("--end", default=None, type=int, help="Defaults to vesting.end")
@click.option("--cliff", default=None, type=int, help="Defaults to vesting.cliff_duration")
@click.pass_context
def vesting_preview(ctx: click.Context, principal: int, now: int, drawn: int,
                    last_drawn_at: int | None, start: int | None, end: int | None, cliff: int | None):
    """Show what a schedule would release at a given time."""
    config = ctx.obj["config"].vesting
    try:
        params = VestingPreviewInput(
            principal=principal,
            drawn=drawn,
            last_drawn_at=last_drawn_at,
            start=config.start if start is None else start,
            end=config.end if end is None else end,
            cliff_duration=config.cliff_duration if cliff is None else cliff,
            now=now,
        )
        window = VestingWindow(params.start, params.end, params.cliff_duration)
    except (ValidationError, ValueError) as exc:
        _cli_fail(exc)
    releasable = vesting_releasable(params.principal, params.drawn, params.last_drawn_at, window, params.now)
    _emit(
        ctx,
        {
            "cliff_end": window.cliff_end,
            "rate_per_second": vesting_rate(params.principal, window),
            "releasable": releasable,
            "remaining_after": params.principal - params.drawn - releasable,
        },
        "Vesting Preview",
    )


@cli.group()
def staking():
    """Staking reward tools."""
    pass


@staking.command("preview")
@click.option("--deposited", required=True, type=int)
@click.option("--staking-start", required=True, type=int)
@click.option("--last-claimed", required=True, type=int)
@click.option("--at", "now", required=True, type=int)
@click.option("--balance", "contract_balance", required=True, type=int, help="Pool token custody")
@click.option("--total-staked", required=True, type=int)
@click.option("--reward-rate", default=None, type=int, help="Defaults to staking.reward_rate")
@click.option("--reward-interval", default=None, type=int, help="Defaults to staking.reward_interval")
@click.pass_context
def staking_preview(ctx: click.Context, deposited: int, staking_start: int, last_claimed: int, now: int,
                    contract_balance: int, total_staked: int, reward_rate: int | None,
                    reward_interval: int | None):
    """Show the pending reward a holder would settle at a given time."""
    config = ctx.obj["config"].staking
    pending = staking_pending(
        is_holder=deposited > 0,
        deposited=deposited,
        reward_rate=config.reward_rate if reward_rate is None else reward_rate,
        reward_interval=config.reward_interval if reward_interval is None else reward_interval,
        staking_start_time=staking_start,
        last_claimed_at=last_claimed,
        now=now,
        contract_balance=contract_balance,
        total_staked=total_staked,
    )
    _emit(ctx, {"pending": pending, "surplus": max(0, contract_balance - total_staked)}, "Staking Preview")


# ==================== Config ====================


@cli.group("config")
def config_group():
    """Configuration inspection."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context):
    """Print the effective configuration as YAML."""
    click.echo(yaml.safe_dump(ctx.obj["config"].to_dict(), sort_keys=False))


def main():
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
