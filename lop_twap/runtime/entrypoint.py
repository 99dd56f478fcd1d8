from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from pydantic import ValidationError
from web3 import Web3

from lop_twap.adapters.allowance import TokenAllowance
from lop_twap.adapters.contract_filler import ContractFiller
from lop_twap.adapters.local_signer import LocalAccountSigner
from lop_twap.adapters.oneinch_api import OneInchQuoteClient, OrderbookSubmitter
from lop_twap.core.domain.errors import AllowanceError, InvalidParameters, SigningError
from lop_twap.core.events.event_bus import EventBus
from lop_twap.core.events.sinks.file_recorder import FileRecorderSink
from lop_twap.core.events.sinks.sink_logging import LoggingEventSink
from lop_twap.core.execution.cancellation import CancellationToken
from lop_twap.core.execution.log_sink import JsonExecutionLogSink
from lop_twap.core.execution.reporter import ExecutionReporter
from lop_twap.core.execution.runner import execute_plan, plan_twap
from lop_twap.core.orders.builder import OrderBuilder
from lop_twap.core.orders.quotes import FixedRateQuote
from lop_twap.core.orders.signer import OrderSigner
from lop_twap.runtime.config import Secrets, TwapConfig, env_overrides
from lop_twap.runtime.prometheus_metrics import PrometheusMetricsClient
from lop_twap.runtime.summary import print_execution_summary, print_plan_summary

if TYPE_CHECKING:
    from lop_twap.core.domain.types import ExecutionSummary, TwapPlan
    from lop_twap.core.ports.fill_backend import FillFunction
    from lop_twap.core.ports.quote_provider import QuoteProvider

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SLICE_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 3

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(args: argparse.Namespace, environ: Mapping[str, str] | None) -> TwapConfig:
    """File config, then TWAP_* environment overrides, then CLI flags."""
    cfg = TwapConfig.from_file(args.config)
    cfg = cfg.with_overrides(**env_overrides(environ))
    return cfg.with_overrides(
        total_amount=args.total_amount,
        slice_count=args.slices,
        interval_seconds=args.interval,
    )


def _build_quote(cfg: TwapConfig, secrets: Secrets) -> QuoteProvider:
    if cfg.quote.mode == "fixed":
        return FixedRateQuote(cfg.quote.rate)
    if not secrets.api_key:
        raise InvalidParameters("ONEINCH_API_KEY is required for quote.mode 'api'")
    return OneInchQuoteClient(
        api_key=secrets.api_key,
        chain_id=cfg.chain_id,
        base_url=cfg.api_base_url,
        haircut_bps=cfg.quote.haircut_bps,
    )


def _build_fill(cfg: TwapConfig, secrets: Secrets) -> FillFunction:
    if cfg.fill_mode == "orderbook":
        if not secrets.api_key:
            raise InvalidParameters("ONEINCH_API_KEY is required for fill_mode 'orderbook'")
        return OrderbookSubmitter(api_key=secrets.api_key, chain_id=cfg.chain_id, base_url=cfg.api_base_url)

    if not secrets.taker_private_key:
        raise InvalidParameters("TAKER_PRIVATE_KEY is required for fill_mode 'contract'")
    try:
        return ContractFiller(
            Web3(Web3.HTTPProvider(cfg.rpc_url)),
            secrets.taker_private_key,
            contract_address=cfg.typed_data_domain.verifying_contract,
        )
    except ValueError as exc:
        raise InvalidParameters(f"unusable TAKER_PRIVATE_KEY: {exc}") from exc


def _check_allowance(cfg: TwapConfig, secrets: Secrets) -> None:
    """Verify (or raise) the router allowance for the whole run."""
    if cfg.allowance == "skip":
        return
    if not cfg.rpc_url:
        LOGGER.warning("No rpc_url configured; router allowance not verified")
        return

    allowance = TokenAllowance(
        Web3(Web3.HTTPProvider(cfg.rpc_url)),
        secrets.maker_private_key,
        cfg.maker_asset,
        spender=cfg.typed_data_domain.verifying_contract,
    )
    allowance.ensure(cfg.total_amount, approve=cfg.allowance == "approve")


def _build_event_bus(cfg: TwapConfig) -> EventBus:
    bus = EventBus([LoggingEventSink(logging.getLogger("lop_twap.events"))])
    if cfg.events_path is not None:
        bus.register(FileRecorderSink(cfg.events_path))
    return bus


def _write_orders(path: Path, plan: TwapPlan) -> None:
    """Write the signed orders in orderbook submission form, one entry per slice."""
    entries: list[dict[str, Any]] = []
    for planned in plan.slices:
        entry: dict[str, Any] = {
            "sliceIndex": planned.index,
            "offsetSeconds": plan.offset_seconds(planned.index),
            "makingAmount": str(planned.making_amount),
        }
        if planned.signed_order is not None:
            entry.update(OrderbookSubmitter.payload(planned.signed_order))
        else:
            entry["error"] = planned.error
        entries.append(entry)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entries, indent=2), encoding="utf-8")


def _push_metrics(summary: ExecutionSummary, maker: str) -> None:
    # --- Prometheus metrics (side-effect only) ---
    metrics = PrometheusMetricsClient()

    if metrics.is_enabled():
        try:
            metrics.set_run_summary(summary, labels={"maker": maker})
            metrics.push_all()
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Prometheus push failed")


def _exit_code(summary: ExecutionSummary, interrupted: bool = False) -> int:
    if summary.cancelled or (interrupted and not summary.completed):
        return EXIT_CANCELLED
    if summary.failed:
        return EXIT_SLICE_FAILED
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lop-twap",
        description="TWAP execution over 1inch Limit Order Protocol v4 (plan or run)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the TWAP JSON config.",
    )

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--plan",
        action="store_true",
        help="Build and sign every slice, print the plan (no submission).",
    )
    mode.add_argument(
        "--run",
        action="store_true",
        help="Build, sign and execute every slice on schedule.",
    )

    parser.add_argument("--total-amount", type=int, default=None, help="Override total_amount (base units).")
    parser.add_argument("--slices", type=int, default=None, help="Override slice_count.")
    parser.add_argument("--interval", type=float, default=None, help="Override interval_seconds.")

    parser.add_argument(
        "--orders-out",
        type=Path,
        default=None,
        help="Write the signed orders JSON to this path.",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    # pylint: disable=too-many-locals
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    # ------------------------------------------------------------------
    # Configuration and collaborators
    # ------------------------------------------------------------------

    try:
        cfg = _load_config(args, environ)
        secrets = Secrets.from_env(environ)
        if not secrets.maker_private_key:
            raise InvalidParameters("MAKER_PRIVATE_KEY (or PRIVATE_KEY) is not set")

        signing_backend = LocalAccountSigner(secrets.maker_private_key)
        try:
            maker = signing_backend.address
        except SigningError as exc:
            raise InvalidParameters(f"unusable maker key: {exc}") from exc

        quote = _build_quote(cfg, secrets)
        fill = None
        if args.run:
            fill = _build_fill(cfg, secrets)
            _check_allowance(cfg, secrets)
    except (FileNotFoundError, json.JSONDecodeError, ValidationError, InvalidParameters, AllowanceError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    bus = _build_event_bus(cfg)
    try:
        # --------------------------------------------------------------
        # Planning
        # --------------------------------------------------------------

        try:
            plan = plan_twap(
                total_amount=cfg.total_amount,
                slice_count=cfg.slice_count,
                interval_seconds=cfg.interval_seconds,
                maker_asset=cfg.maker_asset,
                taker_asset=cfg.taker_asset,
                builder=OrderBuilder(maker=maker, receiver=cfg.receiver),
                signer=OrderSigner(signing_backend, cfg.typed_data_domain),
                quote=quote,
                expiry_duration_seconds=cfg.expiry_seconds,
                event_bus=bus,
            )
        except InvalidParameters as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_USAGE

        # Always show the plan
        print_plan_summary(plan)

        if args.orders_out is not None:
            _write_orders(args.orders_out, plan)
            print()
            print(f"Signed orders written to: {args.orders_out}")

        if args.plan:
            return EXIT_OK

        # --------------------------------------------------------------
        # Execution
        # --------------------------------------------------------------

        cancellation = CancellationToken()

        def _on_sigint(_signum: int, _frame: Any) -> None:
            LOGGER.warning("Interrupt received; cancelling remaining slices")
            cancellation.cancel()

        previous_handler = signal.signal(signal.SIGINT, _on_sigint)
        try:
            execution_log = JsonExecutionLogSink(cfg.execution_log_path) if cfg.execution_log_path else None
            reporter = ExecutionReporter(slice_count=plan.slice_count, sink=execution_log)
            summary = execute_plan(
                plan,
                fill=fill,
                cancellation=cancellation,
                fill_timeout_seconds=cfg.fill_timeout_seconds,
                event_bus=bus,
                reporter=reporter,
            )
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        print_execution_summary(summary, reporter.records)
        _push_metrics(summary, maker)
        return _exit_code(summary, cancellation.is_cancelled)
    finally:
        bus.close()


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
