"""Block-processing pass management for opindex."""

from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Iterator, Optional

from opindex.models import BlockMetadata, BulkResult

if TYPE_CHECKING:
    from opindex.writer import IndexWriter


class BlockPass:
    """State of one block being indexed."""

    def __init__(self, block_num: int, block_time: datetime):
        """Initialize a block pass.

        Args:
            block_num: Number of the block being indexed.
            block_time: Timestamp of the block.
        """
        self._block_num = block_num
        self._block_time = block_time
        self._documents = 0
        self.result: BulkResult = BulkResult()

    @property
    def block_num(self) -> int:
        """Get the block number."""
        return self._block_num

    @property
    def block_time(self) -> datetime:
        """Get the block timestamp."""
        return self._block_time

    @property
    def documents(self) -> int:
        """Get the number of documents submitted so far."""
        return self._documents

    def metadata(self, trx_id: Optional[str] = None) -> BlockMetadata:
        """Block metadata for an operation of transaction ``trx_id``."""
        return BlockMetadata(block_num=self._block_num, block_time=self._block_time, trx_id=trx_id)

    def count(self, documents: int) -> None:
        self._documents += documents


@contextmanager
def block_pass(
    writer: "IndexWriter",
    block_num: int,
    block_time: datetime,
    flush: bool = False,
) -> Iterator[BlockPass]:
    """Context manager for indexing one block.

    On normal exit the block is marked complete on the writer and, when
    ``flush`` is set, the writer's buffer is flushed and the outcome stored
    in ``BlockPass.result``. A pass that raises leaves the block incomplete.

    Args:
        writer: The index writer receiving the block's documents.
        block_num: Number of the block.
        block_time: Timestamp of the block.
        flush: Flush buffered documents when the pass ends.

    Yields:
        The BlockPass for this block.
    """
    ctx = BlockPass(block_num, block_time)
    yield ctx
    writer.end_block(block_num)
    if flush:
        ctx.result = writer.flush()
