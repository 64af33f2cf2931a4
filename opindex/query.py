"""Account-history queries answered from the search engine."""

import logging
from typing import Any, Dict, Optional, Set

from pydantic import TypeAdapter, ValidationError

from opindex import codec
from opindex.backends import HistorySearch, SearchBackend, SearchHit
from opindex.errors import FormatError, OperationNotFoundError
from opindex.mode import ModeController, OperatingMode
from opindex.models import (
    HistoryResult,
    NoSideData,
    OperationRecord,
    SideData,
    SkippedDocument,
)
from opindex.utils import format_object_id, index_pattern

logger = logging.getLogger(__name__)

# Ceiling on records per history page, whatever the caller asks for
MAX_HISTORY_LIMIT = 100

_SIDE_DATA = TypeAdapter(SideData)


def _operation_id(source: Dict[str, Any]) -> Optional[int]:
    try:
        return int(source["operation_id_num"])
    except (KeyError, TypeError, ValueError):
        return None


def decode_document(source: Dict[str, Any]) -> OperationRecord:
    """Rebuild an operation record from an index document body.

    Raises:
        FormatError: If the document is incomplete or its operation does not
            decode.
    """
    try:
        history = source["operation_history"]
        op = codec.decode(history["op"])
        if int(source["operation_type"]) != op.TAG:
            raise FormatError(
                f"document says operation type {source['operation_type']}, "
                f"operation decodes as {int(op.TAG)}"
            )
        return OperationRecord(
            id=int(source["operation_id_num"]),
            block_num=int(source["block_data"]["block_num"]),
            trx_in_block=int(history["trx_in_block"]),
            op_in_trx=int(history["op_in_trx"]),
            is_virtual=bool(history["virtual_op"]),
            result=codec.decode_result(history["operation_result"]),
            op=op,
        )
    except FormatError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise FormatError(f"incomplete history document: {e!r}") from e


def decode_side_data(source: Dict[str, Any]) -> SideData:
    """Read the side data stored in a document; absent means "none".

    Raises:
        FormatError: If the stored side data does not validate.
    """
    try:
        return _SIDE_DATA.validate_python(source.get("additional_data") or {"type": "none"})
    except ValidationError as e:
        raise FormatError(f"invalid side data: {e}") from e


class HistoryQueryEngine:
    """Answers paginated account-history requests, newest operation first."""

    def __init__(
        self,
        backend: SearchBackend,
        mode: OperatingMode,
        index_prefix: str = "opindex-",
        max_limit: int = MAX_HISTORY_LIMIT,
    ):
        """Initialize a query engine.

        Args:
            backend: Search engine to read from.
            mode: Process operating mode; queries need only_query or all.
            index_prefix: Prefix of the indices to search.
            max_limit: Hard ceiling on records per query.
        """
        self._backend = backend
        self._modes = ModeController(mode)
        self._index_pattern = index_pattern(index_prefix)
        self._max_limit = max_limit

    def query(
        self,
        account: str,
        start: int = 0,
        stop: int = 0,
        limit: int = MAX_HISTORY_LIMIT,
    ) -> HistoryResult:
        """Fetch one page of an account's history.

        Args:
            account: Account id (1.2.N).
            start: Return operations strictly older than this id; 0 starts
                from the most recent operation.
            stop: Oldest operation id to include; 0 runs to the first one.
            limit: Maximum number of records, capped at the engine ceiling.

        Returns:
            Records in descending id order. Documents that failed to decode
            are listed in ``skipped`` instead and do not count towards
            ``limit``.

        Raises:
            ModeError: If history queries are disabled.
            TransportError: If the search engine request failed.
        """
        self._modes.require_read()

        size = min(limit, self._max_limit)
        if size <= 0 or (start and start <= stop):
            return HistoryResult()

        result = HistoryResult()
        seen: Set[int] = set()
        max_id = start or None
        # Undecodable hits do not count towards the page, so keep fetching
        # older hits until it is full or the account runs out.
        while len(result.records) < size:
            wanted = size - len(result.records)
            request = HistorySearch(account=account, min_id=stop or None, max_id=max_id, size=wanted)
            hits = self._backend.search(self._index_pattern, request)

            for hit in hits:
                self._collect(hit, result, seen)

            if len(hits) < wanted:
                break
            oldest = _operation_id(hits[-1].source)
            if oldest is None or (max_id is not None and oldest >= max_id):
                break
            max_id = oldest

        if result.partial:
            logger.warning(
                "History of %s returned %d records, %d skipped",
                account,
                len(result.records),
                len(result.skipped),
            )
        return result

    def _collect(self, hit: SearchHit, result: HistoryResult, seen: Set[int]) -> None:
        try:
            record = decode_document(hit.source)
        except FormatError as e:
            logger.warning("Skipping undecodable history document %s: %s", hit.doc_id, e)
            result.skipped.append(
                SkippedDocument(
                    doc_id=hit.doc_id,
                    operation_id=_operation_id(hit.source),
                    error=str(e),
                )
            )
            return
        if record.id in seen:
            return
        seen.add(record.id)
        result.records.append(record)

        try:
            result.side_data[record.id] = decode_side_data(hit.source)
        except FormatError as e:
            logger.warning("Dropping side data of %s: %s", hit.doc_id, e)
            result.side_data[record.id] = NoSideData()

    def get_operation(self, operation_id: int) -> OperationRecord:
        """Fetch a single operation by id.

        Raises:
            ModeError: If history queries are disabled.
            OperationNotFoundError: If no document holds the operation.
            FormatError: If the stored document does not decode.
            TransportError: If the search engine request failed.
        """
        self._modes.require_read()

        hits = self._backend.search(
            self._index_pattern,
            HistorySearch(operation_id=operation_id, size=1),
        )
        if not hits:
            raise OperationNotFoundError(
                f"operation {format_object_id(1, 11, operation_id)} is not indexed"
            )
        return decode_document(hits[0].source)
