"""Elasticsearch-compatible REST backend built on requests."""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from opindex.backends import HistorySearch, IndexAction, SearchHit
from opindex.errors import TransportError
from opindex.models import BulkItem

logger = logging.getLogger(__name__)


class HTTPBackend:
    """Talks to a search engine through its ``_bulk`` and ``_search`` endpoints."""

    def __init__(
        self,
        node_url: str = "http://localhost:9200/",
        basic_auth: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the HTTP backend.

        Args:
            node_url: Base URL of the search engine node.
            basic_auth: Credentials as ``user:password``.
            timeout: Per-request timeout in seconds.
            session: Session to reuse; a new one is created if omitted.
        """
        self._node_url = node_url if node_url.endswith("/") else node_url + "/"
        self._timeout = timeout
        self._session = session or requests.Session()
        if basic_auth:
            user, _, password = basic_auth.partition(":")
            self._session.auth = (user, password)

    @property
    def node_url(self) -> str:
        return self._node_url

    def bulk(self, actions: List[IndexAction]) -> List[BulkItem]:
        """Send one ``_bulk`` request. Returns one item per action, in order."""
        if not actions:
            return []

        lines = []
        for action in actions:
            lines.append(json.dumps({"index": {"_index": action.index, "_id": action.doc_id}}))
            lines.append(json.dumps(action.source))
        body = "\n".join(lines) + "\n"

        data = self._post("_bulk", body, content_type="application/x-ndjson")

        results = data.get("items", [])
        if len(results) != len(actions):
            raise TransportError(
                f"bulk response has {len(results)} items for {len(actions)} documents"
            )

        items = []
        for action, result in zip(actions, results):
            outcome = next(iter(result.values()), {})
            error = outcome.get("error")
            if error is None and int(outcome.get("status", 500)) < 300:
                items.append(BulkItem(doc_id=action.doc_id, ok=True))
            else:
                reason = error.get("reason") if isinstance(error, dict) else error
                items.append(
                    BulkItem(
                        doc_id=action.doc_id,
                        ok=False,
                        error=str(reason or f"status {outcome.get('status')}"),
                    )
                )
        return items

    def search(self, index_pattern: str, request: HistorySearch) -> List[SearchHit]:
        """Run a ``_search`` on ``index_pattern``, newest operation first."""
        data = self._post(
            f"{index_pattern}/_search",
            json.dumps(self.build_query(request)),
            content_type="application/json",
        )
        try:
            hits = data["hits"]["hits"]
        except (KeyError, TypeError) as e:
            raise TransportError(f"malformed search response: {e}") from e

        return [SearchHit(doc_id=hit.get("_id", ""), source=hit.get("_source") or {}) for hit in hits]

    @staticmethod
    def build_query(request: HistorySearch) -> Dict[str, Any]:
        """Translate a history filter into the engine's query DSL."""
        must: List[Dict[str, Any]] = []
        if request.account is not None:
            must.append({"term": {"account_history.account.keyword": request.account}})
        if request.operation_id is not None:
            must.append({"term": {"operation_id_num": request.operation_id}})

        id_range: Dict[str, int] = {}
        if request.min_id is not None:
            id_range["gte"] = request.min_id
        if request.max_id is not None:
            id_range["lt"] = request.max_id
        if id_range:
            must.append({"range": {"operation_id_num": id_range}})

        return {
            "size": request.size,
            "sort": [{"operation_id_num": {"order": "desc"}}],
            "query": {"bool": {"must": must}} if must else {"match_all": {}},
        }

    def _post(self, path: str, body: str, content_type: str) -> Dict[str, Any]:
        url = self._node_url + path
        logger.debug("POST %s (%d bytes)", url, len(body))
        try:
            response = self._session.post(
                url,
                data=body,
                headers={"Content-Type": content_type},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"request to {url} failed: {e}") from e

        if response.status_code >= 300:
            raise TransportError(
                f"{url} returned {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{url} returned invalid JSON: {e}") from e
