"""Public API for the lop_twap package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Collaborators (signing, quoting, filling)
# ----------------------------------------------------------------------
from lop_twap.adapters.allowance import TokenAllowance
from lop_twap.adapters.contract_filler import ContractFiller
from lop_twap.adapters.local_signer import LocalAccountSigner
from lop_twap.adapters.oneinch_api import OneInchQuoteClient, OrderbookSubmitter

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from lop_twap.core.domain.errors import (
    AllowanceError,
    DuplicateRecord,
    FillError,
    InvalidParameters,
    QuoteError,
    SigningError,
    TwapError,
)
from lop_twap.core.domain.types import (
    ExecutionRecord,
    ExecutionSummary,
    FillResult,
    Order,
    PlannedSlice,
    SignedOrder,
    TwapPlan,
)

# ----------------------------------------------------------------------
# Execution API
# ----------------------------------------------------------------------
from lop_twap.core.execution.cancellation import CancellationToken
from lop_twap.core.execution.log_sink import JsonExecutionLogSink
from lop_twap.core.execution.reporter import ExecutionReporter
from lop_twap.core.execution.runner import execute_plan, plan_twap, run_twap
from lop_twap.core.orders.builder import OrderBuilder, split_amount
from lop_twap.core.orders.quotes import FixedRateQuote
from lop_twap.core.orders.signer import OrderSigner
from lop_twap.core.protocol.lop_v4 import TypedDataDomain, build_maker_traits

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from lop_twap.runtime.config import QuoteConfig, Secrets, TwapConfig

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Entry points
    "run_twap",
    "plan_twap",
    "execute_plan",

    # Building blocks
    "OrderBuilder",
    "OrderSigner",
    "ExecutionReporter",
    "CancellationToken",
    "JsonExecutionLogSink",
    "FixedRateQuote",
    "TypedDataDomain",
    "build_maker_traits",
    "split_amount",

    # Collaborators
    "LocalAccountSigner",
    "OneInchQuoteClient",
    "OrderbookSubmitter",
    "ContractFiller",
    "TokenAllowance",

    # Config
    "TwapConfig",
    "QuoteConfig",
    "Secrets",

    # Domain types
    "Order",
    "SignedOrder",
    "PlannedSlice",
    "TwapPlan",
    "ExecutionRecord",
    "ExecutionSummary",
    "FillResult",

    # Errors
    "TwapError",
    "InvalidParameters",
    "SigningError",
    "QuoteError",
    "FillError",
    "DuplicateRecord",
    "AllowanceError",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("lop-twap")
except PackageNotFoundError:
    __version__ = "0.0.0"
