"""Command-line interface for the sBTC loop vault."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any

from .chains.stacks import PollingFinality, StacksClient, StacksLoopChain
from .config import AppConfig, load_config
from .dex import PriceQuoter
from .errors import WithdrawalRejected
from .logging_setup import configure_logging
from .oracles import CoinGeckoOracle, HttpRateProvider
from .services import HttpVaultStateSource, Keeper, VaultService
from .strategy import LoopExecutor


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="loopvault",
        description="Leveraged sBTC loop vault: simulator, health and keeper",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sim = sub.add_parser("simulate", help="Project the loop for a deposit")
    sim.add_argument("amount", type=int, help="Deposit in sats")
    sim.add_argument(
        "--loops", type=int, default=None, help="Loop iterations (overrides config)"
    )

    sub.add_parser("health", help="Print the vault health report")
    sub.add_parser("check", help="Single health check with alerts")
    sub.add_parser("report", help="Send the daily vault report")

    keeper = sub.add_parser("keeper", help="Continuous keeper loop")
    keeper.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Check interval in minutes (overrides config)",
    )

    status = sub.add_parser("status", help="Executor wallet readiness")
    status.add_argument("address", help="Operator wallet address")

    position = sub.add_parser("position", help="Depositor position")
    position.add_argument("address", help="Depositor wallet address")

    withdraw = sub.add_parser("withdraw", help="Build a withdrawal request")
    withdraw.add_argument("shares", type=int, help="Vault shares to redeem")
    withdraw.add_argument(
        "--min-receive",
        type=int,
        default=None,
        help="Minimum sats to accept (default: 99%% of expected)",
    )

    sub.add_parser("emergency-withdraw", help="Build an emergency withdrawal")

    return parser


def build_service(config: AppConfig) -> VaultService:
    """Wire the vault service from configuration."""
    client = StacksClient(config.chain)
    quoter = PriceQuoter(slippage_bps=config.loop.slippage_bps)
    executor = LoopExecutor(
        StacksLoopChain(client, config.chain.contracts),
        quoter,
        PollingFinality(
            client,
            poll_seconds=config.chain.confirmation_poll_seconds,
            timeout_seconds=config.chain.confirmation_timeout_seconds,
        ),
        liquidation_threshold_bps=config.vault.liquidation_threshold_bps,
    )
    return VaultService(
        config,
        CoinGeckoOracle(config.price_oracle),
        HttpRateProvider(config.rates),
        quoter,
        HttpVaultStateSource(config.vault.state_url, timeout=config.chain.api_timeout),
        executor=executor,
        client=client,
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "simulate":
        _print_json(await build_service(config).simulate_deposit(args.amount, args.loops))
    elif args.command == "health":
        _print_json(await build_service(config).health_report())
    elif args.command == "status":
        _print_json(await build_service(config).executor_status(args.address))
    elif args.command == "position":
        _print_json(await build_service(config).position(args.address))
    elif args.command in ("withdraw", "emergency-withdraw"):
        service = build_service(config)
        try:
            if args.command == "withdraw":
                result = await service.preview_withdrawal(args.shares, args.min_receive)
            else:
                result = await service.emergency_withdraw()
        except WithdrawalRejected as e:
            _print_json({"error": str(e)})
            sys.exit(1)
        _print_json(result)
    elif args.command == "check":
        health = await Keeper(config).check_and_alert()
        _print_json(asdict(health))
    elif args.command == "report":
        print(await Keeper(config).generate_daily_report())
    elif args.command == "keeper":
        await Keeper(config).run_continuous(args.interval)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
