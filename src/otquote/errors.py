"""Exception types raised by the work-order quoting pipeline."""

from __future__ import annotations


class OtQuoteError(Exception):
    """Base class for pipeline errors."""


class CatalogBuildError(OtQuoteError):
    """Raised when the row payload as a whole cannot be iterated into a catalog."""


class DataSourceError(OtQuoteError):
    """Raised when neither the remote endpoint nor the local dataset yields rows."""


class QuotePlanError(OtQuoteError):
    """Raised when a quote plan file is missing or structurally invalid."""


__all__ = ["OtQuoteError", "CatalogBuildError", "DataSourceError", "QuotePlanError"]
