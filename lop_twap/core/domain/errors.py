"""Error taxonomy for TWAP planning and execution.

Only InvalidParameters aborts a run before it starts. Quote, signing and
fill errors are local to one slice and end up as a failed execution record.
DuplicateRecord signals a scheduler bug and is never handled.
"""

from __future__ import annotations


class TwapError(Exception):
    """Base class for all errors raised by this package."""


class InvalidParameters(TwapError, ValueError):
    """Malformed plan inputs (non-positive amount, slice count, expiry...)."""


class SigningError(TwapError):
    """The signing backend rejected the key or could not sign."""


class QuoteError(TwapError):
    """The quoting collaborator failed or returned an unusable amount."""


class FillError(TwapError):
    """Submission of a signed order failed before an outcome was known."""


class DuplicateRecord(TwapError, RuntimeError):
    """A slice already has a terminal execution record."""

    def __init__(self, slice_index: int, existing_status: str) -> None:
        super().__init__(
            f"slice {slice_index} already recorded with terminal status '{existing_status}'"
        )
        self.slice_index = slice_index
        self.existing_status = existing_status


class AllowanceError(TwapError):
    """The maker's token allowance for the router is short or could not be read."""
