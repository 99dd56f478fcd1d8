"""Run configuration.

A TWAP run is described by a JSON file parsed into ``TwapConfig``. Private
keys and the API key never live in the file; they are read from the
environment into ``Secrets``. A handful of run parameters can be overridden
from the environment or the command line.

JSON example:
    {
      "total_amount": 1000000,
      "slice_count": 10,
      "interval_seconds": 60,
      "maker_asset": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
      "taker_asset": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
      "quote": {"mode": "api", "haircut_bps": 200},
      "fill_mode": "orderbook",
      "execution_log_path": "out/execution_log.json"
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lop_twap.adapters.oneinch_api import DEFAULT_API_BASE_URL
from lop_twap.core.domain.errors import InvalidParameters
from lop_twap.core.protocol import lop_v4

ENV_TOTAL_AMOUNT = "TWAP_TOTAL_AMOUNT"
ENV_SLICE_COUNT = "TWAP_SLICE_COUNT"
ENV_INTERVAL_SECONDS = "TWAP_INTERVAL_SECONDS"


class QuoteConfig(BaseModel):
    """How taking amounts are priced.

    ``fixed``: taking = making * rate (rate given as a decimal string).
    ``api``: 1inch Swap API quote lowered by ``haircut_bps``.
    """

    mode: Literal["fixed", "api"] = "fixed"
    rate: Decimal | None = Field(default=None, gt=0)
    haircut_bps: int = Field(default=0, ge=0, lt=10_000)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_mode(self) -> QuoteConfig:
        if self.mode == "fixed" and self.rate is None:
            raise ValueError("quote.rate is required when quote.mode is 'fixed'")
        return self


class TwapConfig(BaseModel):
    total_amount: int = Field(..., gt=0)
    slice_count: int = Field(..., ge=1)
    interval_seconds: float = Field(..., ge=0)

    maker_asset: str = Field(..., min_length=1)
    taker_asset: str = Field(..., min_length=1)
    receiver: str | None = None

    expiry_seconds: int | None = Field(default=None, gt=0)
    fill_timeout_seconds: float | None = Field(default=None, gt=0)

    chain_id: int = Field(default=lop_v4.POLYGON_CHAIN_ID, gt=0)
    # Defaults to the router v6 domain on ``chain_id``.
    domain: lop_v4.TypedDataDomain | None = None

    api_base_url: str = DEFAULT_API_BASE_URL
    quote: QuoteConfig

    fill_mode: Literal["orderbook", "contract"] = "orderbook"
    rpc_url: str | None = None
    # Router allowance pre-flight before a run; needs rpc_url.
    allowance: Literal["check", "approve", "skip"] = "check"

    execution_log_path: Path | None = None
    events_path: Path | None = None

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> TwapConfig:
        return cls.model_validate(obj)

    @classmethod
    def from_file(cls, path: Path) -> TwapConfig:
        if not path.exists():
            raise FileNotFoundError(path)
        return cls.from_json_obj(json.loads(path.read_text(encoding="utf-8")))

    @model_validator(mode="after")
    def validate_consistency(self) -> TwapConfig:
        if self.total_amount < self.slice_count:
            raise ValueError(
                f"total_amount ({self.total_amount}) must be >= slice_count ({self.slice_count})"
            )
        if self.domain is not None and self.domain.chain_id != self.chain_id:
            raise ValueError(f"domain.chain_id ({self.domain.chain_id}) does not match chain_id ({self.chain_id})")
        if self.fill_mode == "contract" and not self.rpc_url:
            raise ValueError("rpc_url is required when fill_mode is 'contract'")
        return self

    @property
    def typed_data_domain(self) -> lop_v4.TypedDataDomain:
        if self.domain is not None:
            return self.domain
        return lop_v4.TypedDataDomain(chain_id=self.chain_id)

    def with_overrides(
        self,
        *,
        total_amount: int | None = None,
        slice_count: int | None = None,
        interval_seconds: float | None = None,
    ) -> TwapConfig:
        """Return a re-validated copy with the given run parameters replaced."""
        overrides: dict[str, Any] = {}
        if total_amount is not None:
            overrides["total_amount"] = total_amount
        if slice_count is not None:
            overrides["slice_count"] = slice_count
        if interval_seconds is not None:
            overrides["interval_seconds"] = interval_seconds
        if not overrides:
            return self
        return type(self).model_validate({**self.model_dump(), **overrides})


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read run parameter overrides from ``TWAP_*`` environment variables."""
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    for key, name, parse in (
        ("total_amount", ENV_TOTAL_AMOUNT, int),
        ("slice_count", ENV_SLICE_COUNT, int),
        ("interval_seconds", ENV_INTERVAL_SECONDS, float),
    ):
        raw = env.get(name)
        if raw is None or raw.strip() == "":
            continue
        try:
            overrides[key] = parse(raw.strip())
        except ValueError as exc:
            raise InvalidParameters(f"{name} is not a valid number: {raw!r}") from exc

    return overrides


@dataclass(frozen=True, slots=True)
class Secrets:
    maker_private_key: str | None = field(default=None, repr=False)
    taker_private_key: str | None = field(default=None, repr=False)
    api_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Secrets:
        env = os.environ if environ is None else environ
        return cls(
            maker_private_key=env.get("MAKER_PRIVATE_KEY") or env.get("PRIVATE_KEY") or None,
            taker_private_key=env.get("TAKER_PRIVATE_KEY") or None,
            api_key=env.get("ONEINCH_API_KEY") or None,
        )
