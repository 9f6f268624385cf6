"""Phase-driven reconciliation of operator sources into catalog source configs, registry polling and cluster operator status reporting."""

__version__ = "0.1.0"