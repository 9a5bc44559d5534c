"""Package version."""

CONTRACTS_VERSION = "0.3.0"

__all__ = ["CONTRACTS_VERSION"]
