"""Account-history queries against the globally configured bridge."""

from typing import List

from opindex.config import get_bridge
from opindex.mode import OperatingMode
from opindex.models import OperationRecord
from opindex.query import MAX_HISTORY_LIMIT


def get_operation_by_id(operation_id: int) -> OperationRecord:
    """Fetch one indexed operation.

    Args:
        operation_id: Instance number of the operation (1.11.N).

    Returns:
        The reconstructed OperationRecord.

    Raises:
        OperationNotFoundError: If the operation is not indexed.
        ModeError: If history queries are disabled.
        RuntimeError: If opindex is not configured.
    """
    return get_bridge().get_operation_by_id(operation_id)


def get_account_history(
    account: str,
    stop: int = 0,
    limit: int = MAX_HISTORY_LIMIT,
    start: int = 0,
) -> List[OperationRecord]:
    """Page through the operations of an account, newest first.

    Args:
        account: Account id (1.2.N).
        stop: Oldest operation id to include; 0 for no lower bound.
        limit: Maximum records to return, capped at MAX_HISTORY_LIMIT.
        start: Only operations with a smaller id; 0 starts at the newest.

    Returns:
        Matching records with ``stop <= id < start``. Documents that could
        not be decoded are logged and left out.

    Raises:
        ModeError: If history queries are disabled.
        TransportError: If the search engine request failed.
        RuntimeError: If opindex is not configured.

    Note:
        A range with ``start`` below ``stop`` is empty, not an error.
    """
    return get_bridge().get_account_history(account, stop=stop, limit=limit, start=start)


def get_running_mode() -> OperatingMode:
    """Operating mode of the configured bridge.

    Raises:
        RuntimeError: If opindex is not configured.
    """
    return get_bridge().get_running_mode()
