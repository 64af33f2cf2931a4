"""Batched bulk writes of index documents."""

import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, Optional

from opindex.backends import IndexAction, SearchBackend
from opindex.errors import TransportError
from opindex.mode import ModeController, OperatingMode
from opindex.models import BulkResult, IndexDocument
from opindex.utils import index_name

logger = logging.getLogger(__name__)


class IndexWriter:
    """Buffers documents and writes them to the search engine in batches.

    A batch is flushed when the buffer reaches the batch size or when the
    caller flushes explicitly. Document ids make re-submission idempotent,
    so a resumed process may resend anything past :attr:`durable_block`.
    """

    def __init__(
        self,
        backend: SearchBackend,
        mode: OperatingMode,
        index_prefix: str = "opindex-",
        batch_size: int = 100,
    ):
        """Initialize an index writer.

        Args:
            backend: Search engine to write to.
            mode: Process operating mode; writes need only_save or all.
            index_prefix: Prefix of the monthly index names.
            batch_size: Default flush threshold and bulk request size.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self._backend = backend
        self._modes = ModeController(mode)
        self._index_prefix = index_prefix
        self._batch_size = batch_size
        self._threshold = batch_size

        self._lock = threading.Lock()
        self._buffer: List[IndexDocument] = []
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="opindex-flush")
        self._closed = False

        # Durability bookkeeping, all per block number
        self._outstanding: Counter = Counter()
        self._completed: List[int] = []
        self._durable = 0
        self._failed_from: Optional[int] = None

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending(self) -> int:
        """Number of buffered documents not yet handed to the backend."""
        with self._lock:
            return len(self._buffer)

    @property
    def durable_block(self) -> int:
        """Highest block whose documents are all acknowledged by the backend.

        Only blocks closed with :meth:`end_block` count. Stops advancing at
        the first block that had a failed document.
        """
        with self._lock:
            limits = [block for block, count in self._outstanding.items() if count > 0]
            if self._failed_from is not None:
                limits.append(self._failed_from)
            limit = min(limits) if limits else None

            settled = [block for block in self._completed if limit is None or block < limit]
            if settled:
                self._durable = max(self._durable, max(settled))
                self._completed = [block for block in self._completed if block > self._durable]
            return self._durable

    def submit(
        self,
        documents: Iterable[IndexDocument],
        batch_size: Optional[int] = None,
    ) -> BulkResult:
        """Buffer documents, flushing every time the buffer fills up.

        Every document is buffered before the first bulk request goes out,
        so a transport failure never leaves part of ``documents`` unseen.

        Args:
            documents: Documents in commit order.
            batch_size: Override of the flush threshold, and of the bulk
                request size, from this call on.

        Returns:
            Outcome of every document flushed during this call. Documents
            still buffered are reported by a later flush.

        Raises:
            ModeError: If indexing is disabled.
            RuntimeError: If the writer is closed.
            TransportError: If a bulk request failed as a whole. Its
                ``result`` holds the outcome of the requests this call
                completed before the failure.
        """
        self._modes.require_write()
        self._check_open()

        with self._lock:
            if batch_size:
                self._threshold = batch_size
            threshold = self._threshold
            for document in documents:
                self._buffer.append(document)
                self._outstanding[document.block_data.block_num] += 1

        result = BulkResult()
        while self.pending >= threshold:
            try:
                result = result.merge(self._take_and_send(threshold))
            except TransportError as e:
                e.result = result
                raise
        return result

    def flush(self) -> BulkResult:
        """Write everything buffered and wait for the outcome."""
        return self.flush_async().result()

    def flush_async(self) -> "Future[BulkResult]":
        """Hand everything buffered to the background sender.

        The buffer is emptied immediately, so the caller can keep
        submitting the next block while the request is in flight.

        Raises:
            ModeError: If indexing is disabled.
            RuntimeError: If the writer is closed.
        """
        self._modes.require_write()
        self._check_open()
        with self._lock:
            batch, self._buffer = self._buffer, []
            threshold = self._threshold
        return self._executor.submit(self._send_batches, batch, threshold)

    def end_block(self, block_num: int) -> None:
        """Mark ``block_num`` as completely submitted."""
        with self._lock:
            self._completed.append(block_num)

    def close(self) -> BulkResult:
        """Flush remaining documents and stop the background sender.

        Closing an already closed writer does nothing.
        """
        if self._closed:
            return BulkResult()
        try:
            result = self.flush() if self._modes.mode.can_write else BulkResult()
        finally:
            self._closed = True
            self._executor.shutdown(wait=True)
        return result

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("IndexWriter is closed")

    def _take_and_send(self, threshold: int) -> BulkResult:
        with self._lock:
            batch, self._buffer = self._buffer[:threshold], self._buffer[threshold:]
        # Wait for in-flight async flushes so batches reach the backend in order.
        return self._executor.submit(self._send_batches, batch, threshold).result()

    def _send_batches(self, documents: List[IndexDocument], size: int) -> BulkResult:
        result = BulkResult()
        for start in range(0, len(documents), size):
            result = result.merge(self._send(documents[start:start + size]))
        return result

    def _send(self, batch: List[IndexDocument]) -> BulkResult:
        if not batch:
            return BulkResult()

        actions = [
            IndexAction(
                index=index_name(self._index_prefix, doc.block_data.block_time),
                doc_id=doc.doc_id,
                source=doc.to_source(),
            )
            for doc in batch
        ]
        blocks = [doc.block_data.block_num for doc in batch]

        try:
            items = self._backend.bulk(actions)
        except Exception:
            self._settle(blocks, failed=blocks)
            raise

        failed = [block for block, item in zip(blocks, items) if not item.ok]
        self._settle(blocks, failed=failed)

        result = BulkResult(items=items)
        if failed:
            logger.warning(
                "Bulk request indexed %d of %d documents; first error: %s",
                len(result.succeeded),
                len(items),
                result.failed[0].error,
            )
        else:
            logger.info("Indexed %d documents (blocks %d-%d)", len(items), min(blocks), max(blocks))
        return result

    def _settle(self, blocks: List[int], failed: List[int]) -> None:
        with self._lock:
            for block in blocks:
                self._outstanding[block] -= 1
                if self._outstanding[block] <= 0:
                    del self._outstanding[block]
            if failed:
                first = min(failed)
                if self._failed_from is None or first < self._failed_from:
                    self._failed_from = first
