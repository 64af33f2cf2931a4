"""Utility functions for opindex."""

from datetime import datetime


def format_object_id(space: int, type_id: int, instance: int) -> str:
    """Render a ledger object id, e.g. ``format_object_id(1, 11, 5) == "1.11.5"``."""
    return f"{space}.{type_id}.{instance}"


def document_id(account: str, operation_id: int) -> str:
    """Document identity for an (account, operation) pair."""
    return f"{account}_{operation_id}"


def index_name(prefix: str, block_time: datetime) -> str:
    """Monthly index holding documents from blocks produced at ``block_time``."""
    return f"{prefix}{block_time:%Y-%m}"


def index_pattern(prefix: str) -> str:
    """Pattern matching every index written under ``prefix``."""
    return f"{prefix}*"
