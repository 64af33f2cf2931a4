"""Fluent builder for index documents."""

import json
from typing import Optional, Type

from opindex import codec
from opindex.models import (
    AccountHistoryLink,
    BlockMetadata,
    FeeData,
    FillData,
    IndexDocument,
    NoSideData,
    OperationHistoryFields,
    OperationRecord,
    SideData,
    TransferData,
)
from opindex.operations import BaseOperation, OperationKind


def expected_side_data(op: BaseOperation) -> Type:
    """The side-data variant the extractor produces for ``op``."""
    if op.TAG == OperationKind.TRANSFER:
        return TransferData
    if op.TAG == OperationKind.FILL_ORDER:
        return FillData
    if op.fee_bearing():
        return FeeData
    return NoSideData


class DocumentBuilder:
    """Fluent builder assembling one index document per account-history link.

    All methods return self for chaining (except build()).
    """

    def __init__(self, link: AccountHistoryLink, operation_object: bool = True):
        """Initialize a document builder.

        Args:
            link: The account-history link the document is indexed under.
            operation_object: Also store the structured operation fields
                alongside the encoded operation string.
        """
        self._link = link
        self._operation_object = operation_object
        self._record: Optional[OperationRecord] = None
        self._block: Optional[BlockMetadata] = None
        self._side_data: SideData = NoSideData()

    def record(self, record: OperationRecord) -> "DocumentBuilder":
        self._record = record
        return self

    def block(self, block: BlockMetadata) -> "DocumentBuilder":
        self._block = block
        return self

    def side_data(self, side_data: Optional[SideData]) -> "DocumentBuilder":
        """Attach side data. None stands for the explicit "none" variant."""
        self._side_data = side_data if side_data is not None else NoSideData()
        return self

    def build(self) -> IndexDocument:
        """Assemble the document.

        Raises:
            ValueError: If record() or block() was not called, or the link,
                block or side data do not belong to the record.
            FormatError: If the operation result is not a valid encoded
                result.
        """
        if self._record is None or self._block is None:
            raise ValueError("DocumentBuilder needs both a record and a block")

        record, block, link = self._record, self._block, self._link
        if link.operation_id != record.id:
            raise ValueError(
                f"link {link.id} points at operation {link.operation_id}, not {record.id}"
            )
        if block.block_num != record.block_num:
            raise ValueError(
                f"operation {record.id} is in block {record.block_num}, not {block.block_num}"
            )
        if not isinstance(self._side_data, NoSideData):
            expected = expected_side_data(record.op)
            if not isinstance(self._side_data, expected):
                raise ValueError(
                    f"{type(self._side_data).__name__} attached to a {record.op.kind} operation"
                )

        result = codec.decode_result(record.result)
        return IndexDocument(
            account_history=link,
            operation_history=OperationHistoryFields(
                trx_in_block=record.trx_in_block,
                op_in_trx=record.op_in_trx,
                operation_result=json.dumps(result, separators=(",", ":")),
                virtual_op=int(record.is_virtual),
                op=codec.to_json(record.op),
                op_object=codec.encode(record.op)[1] if self._operation_object else None,
            ),
            operation_type=int(record.op.TAG),
            operation_id_num=record.id,
            block_data=block,
            additional_data=self._side_data,
        )


def build_document(
    link: AccountHistoryLink,
    record: OperationRecord,
    block: BlockMetadata,
    side_data: Optional[SideData] = None,
    operation_object: bool = True,
) -> IndexDocument:
    """Assemble one index document. Pure; performs no I/O."""
    return (
        DocumentBuilder(link, operation_object=operation_object)
        .record(record)
        .block(block)
        .side_data(side_data)
        .build()
    )
