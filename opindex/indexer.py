"""Turns committed blocks into index documents."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from opindex.builder import build_document
from opindex.context import block_pass
from opindex.errors import ComputationError
from opindex.extract import AssetRegistry, SideDataExtractor
from opindex.models import (
    BlockMetadata,
    BulkResult,
    CommittedOperation,
    IndexDocument,
    SideData,
)
from opindex.writer import IndexWriter

logger = logging.getLogger(__name__)

# Blocks younger than this are treated as live and flushed every block
SYNC_WINDOW = timedelta(days=1)


def _utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class Indexer:
    """Feeds each committed block through side-data extraction and the writer.

    While replaying old blocks documents are written in large batches; once
    blocks are recent the batches shrink and every block is flushed at its
    end, so new operations become searchable quickly.
    """

    def __init__(
        self,
        writer: IndexWriter,
        assets: AssetRegistry,
        visitor: bool = True,
        operation_object: bool = True,
        start_after_block: int = 0,
        bulk_replay: int = 10000,
        bulk_sync: int = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize an indexer.

        Args:
            writer: Index writer receiving the documents.
            assets: Asset metadata used to scale side-data amounts.
            visitor: Extract fee/transfer/fill side data.
            operation_object: Store structured operation fields in documents.
            start_after_block: Skip blocks numbered below this.
            bulk_replay: Batch size while replaying old blocks.
            bulk_sync: Batch size once in sync with the chain head.
            clock: Wall clock, returns an aware datetime.
        """
        self._writer = writer
        self._extractor = SideDataExtractor(assets)
        self._visitor = visitor
        self._operation_object = operation_object
        self._start_after_block = start_after_block
        self._bulk_replay = bulk_replay
        self._bulk_sync = bulk_sync
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def writer(self) -> IndexWriter:
        return self._writer

    def is_sync(self, block_time: datetime) -> bool:
        """Whether a block is recent enough to be indexed in live mode."""
        return _utc(self._clock()) - _utc(block_time) < SYNC_WINDOW

    def side_data(self, committed: CommittedOperation) -> Optional[SideData]:
        """Side data for one operation, or None if disabled or not computable."""
        if not self._visitor:
            return None
        try:
            return self._extractor(committed.record.op)
        except ComputationError as e:
            logger.warning(
                "Indexing operation %d without side data: %s", committed.record.id, e
            )
            return None

    def documents_for(
        self,
        committed: CommittedOperation,
        block: BlockMetadata,
    ) -> List[IndexDocument]:
        """One document per account linked to the operation."""
        side_data = self.side_data(committed)
        return [
            build_document(
                link,
                committed.record,
                block,
                side_data,
                operation_object=self._operation_object,
            )
            for link in committed.links
        ]

    def on_block(
        self,
        block_num: int,
        block_time: datetime,
        operations: Iterable[CommittedOperation],
    ) -> BulkResult:
        """Index every operation of a committed block.

        Args:
            block_num: Number of the block.
            block_time: Timestamp of the block.
            operations: The block's operations in commit order.

        Returns:
            Outcome of every document flushed while handling this block.

        Raises:
            ModeError: If indexing is disabled.
            TransportError: If a bulk request failed as a whole.
        """
        if block_num < self._start_after_block:
            return BulkResult()

        sync = self.is_sync(block_time)
        threshold = self._bulk_sync if sync else self._bulk_replay

        result = BulkResult()
        with block_pass(self._writer, block_num, block_time, flush=sync) as bp:
            for committed in operations:
                documents = self.documents_for(committed, bp.metadata(committed.trx_id))
                result = result.merge(self._writer.submit(documents, batch_size=threshold))
                bp.count(len(documents))

        if bp.documents:
            logger.debug("Block %d produced %d documents", block_num, bp.documents)
        return result.merge(bp.result)
