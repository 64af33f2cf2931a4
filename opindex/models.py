"""Pydantic models for opindex."""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from opindex.operations import Operation
from opindex.utils import document_id


class OperationRecord(BaseModel):
    """A committed ledger operation, as stored in operation history."""

    model_config = ConfigDict(frozen=True)

    # Identity (instance number of 1.11.N)
    id: int

    # Position in the ledger
    block_num: int
    trx_in_block: int = 0
    op_in_trx: int = 0
    is_virtual: bool = False

    # Payload
    result: List[Any] = Field(default_factory=lambda: [0, {}])
    op: Operation


class BlockMetadata(BaseModel):
    """Block context of an operation. ``trx_id`` is None for virtual operations."""

    model_config = ConfigDict(frozen=True)

    block_num: int
    block_time: datetime
    trx_id: Optional[str] = None


class AccountHistoryLink(BaseModel):
    """Links an account to one operation in its history (2.9.N)."""

    model_config = ConfigDict(frozen=True)

    id: int
    account: str
    operation_id: int
    sequence: int = 0


class AssetInfo(BaseModel):
    """Asset metadata supplied by the ledger."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    symbol: str
    precision: int = Field(ge=0)


class CommittedOperation(BaseModel):
    """One committed operation together with the accounts it touches."""

    record: OperationRecord
    trx_id: Optional[str] = None
    links: List[AccountHistoryLink] = Field(default_factory=list)


# =============================================================================
# Side data: exactly one variant per document, "none" included
# =============================================================================


class NoSideData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class FeeData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fee"] = "fee"
    asset: str
    asset_name: str
    amount: int
    amount_units: float


class TransferData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["transfer"] = "transfer"
    asset: str
    asset_name: str
    amount: int
    amount_units: float
    from_account: str
    to_account: str


class FillData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fill"] = "fill"
    order_id: str
    account_id: str
    pays_asset_id: str
    pays_asset_name: str
    pays_amount: int
    pays_amount_units: float
    receives_asset_id: str
    receives_asset_name: str
    receives_amount: int
    receives_amount_units: float
    fill_price: float
    fill_price_units: float
    is_maker: bool


SideData = Annotated[
    Union[NoSideData, FeeData, TransferData, FillData],
    Field(discriminator="type"),
]


# =============================================================================
# Index documents
# =============================================================================


class OperationHistoryFields(BaseModel):
    """Flattened operation-history part of an index document."""

    trx_in_block: int
    op_in_trx: int
    operation_result: str
    virtual_op: int
    op: str
    op_object: Optional[Dict[str, Any]] = None


class IndexDocument(BaseModel):
    """The unit submitted to the search engine.

    Identity is the (account, operation id) pair, see :attr:`doc_id`.
    """

    account_history: AccountHistoryLink
    operation_history: OperationHistoryFields
    operation_type: int
    operation_id_num: int
    block_data: BlockMetadata
    additional_data: SideData = Field(default_factory=NoSideData)

    @property
    def doc_id(self) -> str:
        return document_id(self.account_history.account, self.operation_id_num)

    def to_source(self) -> Dict[str, Any]:
        """Serialize to the JSON-ready body sent to the search engine."""
        return self.model_dump(mode="json")


# =============================================================================
# Write and read results
# =============================================================================


class BulkItem(BaseModel):
    """Outcome of one document within a bulk request."""

    doc_id: str
    ok: bool
    error: Optional[str] = None


class BulkResult(BaseModel):
    """Per-document outcome of one or more bulk requests, in submission order."""

    items: List[BulkItem] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(item.ok for item in self.items)

    @property
    def succeeded(self) -> List[BulkItem]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> List[BulkItem]:
        return [item for item in self.items if not item.ok]

    def merge(self, other: "BulkResult") -> "BulkResult":
        return BulkResult(items=self.items + other.items)


class SkippedDocument(BaseModel):
    """A search hit that could not be turned back into a record."""

    doc_id: Optional[str] = None
    operation_id: Optional[int] = None
    error: str


class HistoryResult(BaseModel):
    """Records returned by a history query, newest first.

    ``skipped`` lists documents dropped because they failed to decode; a
    non-empty list marks the result as partial. ``side_data`` maps each
    returned operation id to the side data stored with it.
    """

    records: List[OperationRecord] = Field(default_factory=list)
    side_data: Dict[int, SideData] = Field(default_factory=dict)
    skipped: List[SkippedDocument] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.skipped)

    @property
    def oldest_id(self) -> Optional[int]:
        """Lowest operation id among records and skipped documents.

        Pass it as ``start`` to fetch the next page.
        """
        ids = [record.id for record in self.records]
        ids.extend(s.operation_id for s in self.skipped if s.operation_id is not None)
        return min(ids) if ids else None
