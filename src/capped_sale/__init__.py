"""Capped sale: a time-bounded fund-raising ledger with nested contribution caps."""

__version__ = "0.1.0"
