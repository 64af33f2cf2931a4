"""opindex - ledger operation history on a search engine.

Indexes every committed ledger operation as one document per affected
account, and answers paginated account-history queries from those
documents.

Example usage:

    from opindex import AssetInfo, OperatingMode, Settings, configure, history

    # Configure once at startup
    bridge = configure(
        Settings(mode=OperatingMode.ALL, node_url="http://localhost:9200/"),
        assets=[AssetInfo(asset_id="1.3.0", symbol="CORE", precision=5)],
    )

    # Feed committed blocks from the ledger
    bridge.on_block(block_num, block_time, committed_operations)

    # Query account history, newest first
    records = history.get_account_history("1.2.17", stop=0, limit=10, start=0)
"""

from opindex.config import Bridge, Settings, configure, get_bridge
from opindex.errors import (
    ComputationError,
    FormatError,
    ModeError,
    OperationNotFoundError,
    OpIndexError,
    TransportError,
)
from opindex.mode import ModeController, OperatingMode
from opindex.models import (
    AccountHistoryLink,
    AssetInfo,
    BlockMetadata,
    BulkResult,
    CommittedOperation,
    IndexDocument,
    OperationRecord,
)
from opindex import codec
from opindex import history

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "configure",
    "get_bridge",
    "Bridge",
    "Settings",
    "OperatingMode",
    "ModeController",
    # Models
    "AccountHistoryLink",
    "AssetInfo",
    "BlockMetadata",
    "BulkResult",
    "CommittedOperation",
    "IndexDocument",
    "OperationRecord",
    # Errors
    "OpIndexError",
    "FormatError",
    "ComputationError",
    "ModeError",
    "TransportError",
    "OperationNotFoundError",
    # Submodules
    "codec",
    "history",
]
