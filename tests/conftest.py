"""Shared fixtures for the opindex test suite."""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from opindex.backends import SearchHit
from opindex.errors import TransportError
from opindex.extract import StaticAssetRegistry
from opindex.models import (
    AccountHistoryLink,
    AssetInfo,
    BlockMetadata,
    BulkItem,
    CommittedOperation,
    OperationRecord,
)
from opindex.operations import (
    AccountUpdateOperation,
    Asset,
    BaseOperation,
    FillOrderOperation,
    TransferOperation,
)

CORE = AssetInfo(asset_id="1.3.0", symbol="CORE", precision=5)
USD = AssetInfo(asset_id="1.3.1", symbol="USD", precision=4)

ALICE = "1.2.17"
BOB = "1.2.18"

# Old enough that the indexer treats it as replay
BLOCK_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db(tmp_path):
    """Connection string of a fresh SQLite database."""
    return f"sqlite:///{tmp_path / 'index.db'}"


@pytest.fixture
def assets():
    return StaticAssetRegistry([CORE, USD])


@pytest.fixture
def transfer():
    """Factory for transfer operations."""

    def make(
        amount: int = 150000,
        from_account: str = ALICE,
        to_account: str = BOB,
        asset_id: str = CORE.asset_id,
        fee: int = 2000,
    ) -> TransferOperation:
        return TransferOperation(
            fee=Asset(amount=fee, asset_id=CORE.asset_id),
            from_account=from_account,
            to_account=to_account,
            amount=Asset(amount=amount, asset_id=asset_id),
        )

    return make


@pytest.fixture
def fill():
    """Factory for fill_order operations: pays CORE, receives USD by default."""

    def make(
        pays: int = 200000,
        receives: int = 30000,
        is_maker: bool = True,
        account_id: str = ALICE,
        pays_asset: str = CORE.asset_id,
        receives_asset: str = USD.asset_id,
    ) -> FillOrderOperation:
        return FillOrderOperation(
            fee=Asset(amount=0, asset_id=receives_asset),
            order_id="1.7.9",
            account_id=account_id,
            pays=Asset(amount=pays, asset_id=pays_asset),
            receives=Asset(amount=receives, asset_id=receives_asset),
            is_maker=is_maker,
        )

    return make


@pytest.fixture
def account_update():
    def make(account: str = ALICE) -> AccountUpdateOperation:
        return AccountUpdateOperation(
            fee=Asset(amount=500, asset_id=CORE.asset_id),
            account=account,
            memo_key="KEY1",
        )

    return make


@pytest.fixture
def committed():
    """Factory for CommittedOperation with one history link per account."""

    def make(
        op_id: int,
        op: BaseOperation,
        block_num: int = 1,
        accounts: Optional[List[str]] = None,
        trx_id: Optional[str] = "0f3a",
    ) -> CommittedOperation:
        if accounts is None:
            accounts = [ALICE]
        record = OperationRecord(
            id=op_id,
            block_num=block_num,
            is_virtual=op.VIRTUAL,
            op=op,
        )
        links = [
            AccountHistoryLink(id=op_id * 10 + i, account=account, operation_id=op_id)
            for i, account in enumerate(accounts)
        ]
        return CommittedOperation(
            record=record,
            trx_id=None if op.VIRTUAL else trx_id,
            links=links,
        )

    return make


@pytest.fixture
def block():
    def make(block_num: int = 1, trx_id: Optional[str] = "0f3a") -> BlockMetadata:
        return BlockMetadata(block_num=block_num, block_time=BLOCK_TIME, trx_id=trx_id)

    return make


class MemoryBackend:
    """In-memory SearchBackend recording every bulk request."""

    def __init__(self):
        self.documents = {}
        self.requests = []
        self.fail_ids = set()
        self.down = False

    def bulk(self, actions):
        if self.down:
            raise TransportError("search engine unreachable")
        self.requests.append(list(actions))
        items = []
        for action in actions:
            if action.doc_id in self.fail_ids:
                items.append(BulkItem(doc_id=action.doc_id, ok=False, error="mapper_parsing_exception"))
            else:
                self.documents[action.doc_id] = (action.index, action.source)
                items.append(BulkItem(doc_id=action.doc_id, ok=True))
        return items

    def search(self, index_pattern, request):
        if self.down:
            raise TransportError("search engine unreachable")
        prefix = index_pattern.rstrip("*")
        hits = []
        for doc_id, (index, source) in self.documents.items():
            op_id = source["operation_id_num"]
            if not index.startswith(prefix):
                continue
            if request.account is not None and source["account_history"]["account"] != request.account:
                continue
            if request.operation_id is not None and op_id != request.operation_id:
                continue
            if request.min_id is not None and op_id < request.min_id:
                continue
            if request.max_id is not None and op_id >= request.max_id:
                continue
            hits.append(SearchHit(doc_id=doc_id, source=source))
        hits.sort(key=lambda hit: hit.source["operation_id_num"], reverse=True)
        return hits[: request.size]


@pytest.fixture
def memory_backend():
    return MemoryBackend()
