"""Search backend protocol and implementations for opindex."""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from opindex.models import BulkItem


class IndexAction(BaseModel):
    """Write one document under ``doc_id``, replacing any previous version."""

    index: str
    doc_id: str
    source: Dict[str, Any]


class HistorySearch(BaseModel):
    """Filter for history lookups. Hits come back newest first.

    ``min_id`` is inclusive and ``max_id`` exclusive; None leaves that end open.
    """

    account: Optional[str] = None
    operation_id: Optional[int] = None
    min_id: Optional[int] = None
    max_id: Optional[int] = None
    size: int = 100


class SearchHit(BaseModel):
    doc_id: str
    source: Dict[str, Any]


@runtime_checkable
class SearchBackend(Protocol):
    """Protocol defining the contract with the search engine."""

    def bulk(self, actions: List[IndexAction]) -> List[BulkItem]:
        """Index documents. Returns one item per action, in order.

        Raises:
            TransportError: If the request as a whole failed.
        """
        ...

    def search(self, index_pattern: str, request: HistorySearch) -> List[SearchHit]:
        """Find documents, sorted by operation id descending.

        Raises:
            TransportError: If the request failed.
        """
        ...
