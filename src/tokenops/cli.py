"""CLI entry point for TokenOps compliance tooling."""

from __future__ import annotations

import json

import click


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


@click.group()
def main() -> None:
    """TokenOps compliance core."""


@main.command()
@click.option("--config", default=None, help="Config file path")
@click.option("--interval", default=None, type=float, help="Seconds between watcher runs")
@click.option("--lookback", default=None, type=float, help="Only check issuances newer than this many seconds")
def watch(config: str | None, interval: float | None, lookback: float | None) -> None:
    """Run the issuance status watcher until interrupted."""
    import asyncio

    from .main import run_watcher

    overrides: dict = {}
    if interval is not None:
        overrides.setdefault("watcher", {})["interval_seconds"] = interval
    if lookback is not None:
        overrides.setdefault("watcher", {})["lookback_seconds"] = lookback

    asyncio.run(run_watcher(config_path=config, overrides=overrides))


@main.command()
@click.argument("asset_id")
@click.option("--config", default=None, help="Config file path")
def readiness(asset_id: str, config: str | None) -> None:
    """Evaluate issuance readiness for ASSET_ID."""
    import asyncio

    from .main import run_readiness

    result = asyncio.run(run_readiness(config, asset_id))
    _echo_json(result)
    if not result["ok"]:
        raise SystemExit(1)


@main.command("require-auth")
@click.argument("address")
@click.option("--config", default=None, help="Config file path")
def require_auth(address: str, config: str | None) -> None:
    """Check whether ADDRESS has RequireAuth enabled on the ledger."""
    import asyncio

    from .main import run_require_auth

    result = asyncio.run(run_require_auth(config, address))
    _echo_json(result)
    if result.get("error"):
        raise SystemExit(2)
    if not result["hasRequireAuth"]:
        raise SystemExit(1)


@main.command("evaluate-policy")
@click.option("--facts", "facts_path", required=True, type=click.Path(exists=True, dir_okay=False), help="JSON file with asset facts")
@click.option("--asset-id", default=None, help="Persist matched requirements for this asset")
@click.option("--config", default=None, help="Config file path")
def evaluate_policy(facts_path: str, asset_id: str | None, config: str | None) -> None:
    """Evaluate which regulatory requirements apply to the given facts."""
    import asyncio

    from .main import run_evaluate_policy

    with open(facts_path, encoding="utf-8") as f:
        facts = json.load(f)

    _echo_json(asyncio.run(run_evaluate_policy(config, facts, asset_id)))


@main.command("init-db")
@click.option("--config", default=None, help="Config file path")
@click.option("--no-seed", is_flag=True, help="Create tables only")
def init_db(config: str | None, no_seed: bool) -> None:
    """Create tables and seed the default regimes and requirement templates."""
    import asyncio

    from .main import run_init_db

    regimes, templates = asyncio.run(run_init_db(config, seed=not no_seed))
    click.echo(f"Seeded {regimes} regimes and {templates} requirement templates.")


if __name__ == "__main__":
    main()
