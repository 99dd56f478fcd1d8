"""
Semantic test: CLI exit codes reflect the run outcome.

Invariant:
0 when every slice succeeded (or a plan was printed), 1 when at least one
slice failed, 3 when the run was cancelled before completion, 2 for usage
and configuration errors.
"""

# pylint: disable=redefined-outer-name
from __future__ import annotations

import json
from pathlib import Path

import pytest
from eth_account import Account
from jsonschema import validate as jsonschema_validate

from lop_twap.core.domain.errors import AllowanceError
from lop_twap.core.domain.types import FillResult
from lop_twap.core.execution.cancellation import CancellationToken
from lop_twap.runtime import entrypoint

SCHEMA_DIR = Path(__file__).parent.parent.parent.parent / "lop_twap" / "core" / "schemas"


@pytest.fixture(autouse=True)
def _no_pushgateway(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)


@pytest.fixture
def config_path(tmp_path) -> Path:
    path = tmp_path / "twap.json"
    path.write_text(
        json.dumps(
            {
                "total_amount": 1_000,
                "slice_count": 4,
                "interval_seconds": 0,
                "maker_asset": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
                "taker_asset": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
                "quote": {"mode": "fixed", "rate": "2"},
                "execution_log_path": str(tmp_path / "out" / "execution_log.json"),
                "events_path": str(tmp_path / "out" / "events.jsonl"),
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def environ() -> dict[str, str]:
    return {"MAKER_PRIVATE_KEY": Account.create().key.hex()}


def _use_fill(monkeypatch, fill) -> None:
    monkeypatch.setattr(entrypoint, "_build_fill", lambda cfg, secrets: fill)


def test_plan_mode_prints_and_writes_orders(config_path, environ, tmp_path, capsys) -> None:
    orders_out = tmp_path / "orders.json"

    code = entrypoint.main(["--config", str(config_path), "--plan", "--orders-out", str(orders_out)], environ)

    assert code == entrypoint.EXIT_OK
    assert "Slices: 4 (4 signed)" in capsys.readouterr().out

    schema = json.loads((SCHEMA_DIR / "signed_order.schema.json").read_text(encoding="utf-8"))
    entries = json.loads(orders_out.read_text(encoding="utf-8"))
    assert [entry["sliceIndex"] for entry in entries] == [0, 1, 2, 3]
    for entry in entries:
        jsonschema_validate(instance=entry, schema=schema)
    assert not (tmp_path / "out" / "execution_log.json").exists()


def test_run_all_succeeded(config_path, environ, tmp_path, monkeypatch) -> None:
    _use_fill(monkeypatch, lambda signed_order: FillResult(success=True, reference="0xok"))

    code = entrypoint.main(["--config", str(config_path), "--run"], environ)

    assert code == entrypoint.EXIT_OK
    persisted = json.loads((tmp_path / "out" / "execution_log.json").read_text(encoding="utf-8"))
    assert [entry["status"] for entry in persisted].count("succeeded") == 4
    assert (tmp_path / "out" / "events.jsonl").exists()


def test_run_with_failed_slice(config_path, environ, monkeypatch) -> None:
    outcomes = iter([True, False, True])
    _use_fill(monkeypatch, lambda signed_order: {"success": next(outcomes), "error": "expired"})

    code = entrypoint.main(["--config", str(config_path), "--run", "--slices", "3"], environ)

    assert code == entrypoint.EXIT_SLICE_FAILED


def test_run_cancelled(config_path, environ, monkeypatch) -> None:
    class CancelledToken(CancellationToken):
        def __init__(self) -> None:
            super().__init__()
            self.cancel()

    monkeypatch.setattr(entrypoint, "CancellationToken", CancelledToken)
    _use_fill(monkeypatch, lambda signed_order: FillResult(success=True))

    code = entrypoint.main(["--config", str(config_path), "--run"], environ)

    assert code == entrypoint.EXIT_CANCELLED


def test_missing_maker_key_is_usage_error(config_path, capsys) -> None:
    code = entrypoint.main(["--config", str(config_path), "--plan"], {})

    assert code == entrypoint.EXIT_USAGE
    assert "MAKER_PRIVATE_KEY" in capsys.readouterr().err


def test_orderbook_mode_without_api_key_is_usage_error(config_path, environ) -> None:
    assert entrypoint.main(["--config", str(config_path), "--run"], environ) == entrypoint.EXIT_USAGE


@pytest.mark.parametrize(
    "extra_args",
    [["--total-amount", "0"], ["--slices", "5000"], ["--interval", "-1"]],
)
def test_invalid_overrides_are_usage_errors(config_path, environ, extra_args) -> None:
    assert entrypoint.main(["--config", str(config_path), "--plan", *extra_args], environ) == entrypoint.EXIT_USAGE


def test_missing_config_file_is_usage_error(tmp_path, environ) -> None:
    assert entrypoint.main(["--config", str(tmp_path / "missing.json"), "--plan"], environ) == entrypoint.EXIT_USAGE


def test_env_overrides_apply(config_path, environ, capsys) -> None:
    environ["TWAP_SLICE_COUNT"] = "2"

    assert entrypoint.main(["--config", str(config_path), "--plan"], environ) == entrypoint.EXIT_OK
    assert "Slices: 2 (2 signed)" in capsys.readouterr().out


def test_plan_and_run_are_exclusive(config_path, environ) -> None:
    with pytest.raises(SystemExit) as excinfo:
        entrypoint.main(["--config", str(config_path), "--plan", "--run"], environ)

    assert excinfo.value.code == 2


class FakeAllowance:
    """Stands in for TokenAllowance and records the requested check."""

    instances: list[FakeAllowance] = []
    sufficient = True

    def __init__(self, w3, owner_private_key, token, *, spender) -> None:
        self.token = token
        self.spender = spender
        self.ensured: list[tuple[int, bool]] = []
        FakeAllowance.instances.append(self)

    def ensure(self, amount: int, *, approve: bool = False) -> int:
        self.ensured.append((amount, approve))
        if not FakeAllowance.sufficient and not approve:
            raise AllowanceError(f"router allowance 0 is below the required {amount}")
        return amount


def _with_rpc(config_path: Path, **fields) -> None:
    obj = json.loads(config_path.read_text(encoding="utf-8"))
    obj.update({"rpc_url": "http://127.0.0.1:8545", **fields})
    config_path.write_text(json.dumps(obj), encoding="utf-8")


@pytest.fixture
def fake_allowance(monkeypatch) -> type[FakeAllowance]:
    FakeAllowance.instances = []
    FakeAllowance.sufficient = True
    monkeypatch.setattr(entrypoint, "TokenAllowance", FakeAllowance)
    return FakeAllowance


def test_short_allowance_aborts_run_before_any_fill(config_path, environ, monkeypatch, fake_allowance, capsys) -> None:
    _with_rpc(config_path)
    fake_allowance.sufficient = False
    calls: list[object] = []
    _use_fill(monkeypatch, calls.append)

    code = entrypoint.main(["--config", str(config_path), "--run"], environ)

    assert code == entrypoint.EXIT_USAGE
    assert "allowance" in capsys.readouterr().err
    assert calls == []
    assert fake_allowance.instances[0].ensured == [(1_000, False)]


def test_allowance_approve_mode_runs(config_path, environ, monkeypatch, fake_allowance) -> None:
    _with_rpc(config_path, allowance="approve")
    fake_allowance.sufficient = False
    _use_fill(monkeypatch, lambda signed_order: FillResult(success=True))

    code = entrypoint.main(["--config", str(config_path), "--run"], environ)

    assert code == entrypoint.EXIT_OK
    checker = fake_allowance.instances[0]
    assert checker.ensured == [(1_000, True)]
    assert checker.token == "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"


def test_allowance_not_checked_in_plan_mode_or_when_skipped(config_path, environ, monkeypatch, fake_allowance) -> None:
    _with_rpc(config_path, allowance="skip")
    _use_fill(monkeypatch, lambda signed_order: FillResult(success=True))

    assert entrypoint.main(["--config", str(config_path), "--plan"], environ) == entrypoint.EXIT_OK
    assert entrypoint.main(["--config", str(config_path), "--run"], environ) == entrypoint.EXIT_OK
    assert fake_allowance.instances == []
