"""
Integration tests against a real Elasticsearch-compatible node.

Requires:
- A search node at OPINDEX_TEST_NODE_URL (default http://localhost:9200/)

Skipped when the node is unreachable.
Run with: python -m pytest tests/test_integration.py -v -s
"""

import os
import time
import uuid
from datetime import datetime, timezone

import pytest
import requests

from opindex import Bridge, OperatingMode, Settings
from opindex.backends import HistorySearch
from opindex.backends.http import HTTPBackend

NODE_URL = os.environ.get("OPINDEX_TEST_NODE_URL", "http://localhost:9200/")
BASIC_AUTH = os.environ.get("OPINDEX_TEST_BASIC_AUTH")

BLOCK_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _node_available() -> bool:
    try:
        return requests.get(NODE_URL, timeout=2).status_code < 500
    except requests.RequestException:
        return False


pytestmark = pytest.mark.skipif(not _node_available(), reason=f"no search node at {NODE_URL}")


def refresh(prefix: str) -> None:
    """Make freshly indexed documents visible to search."""
    requests.post(f"{NODE_URL.rstrip('/')}/{prefix}*/_refresh", timeout=10)


def wait_for_hits(backend: HTTPBackend, pattern: str, request: HistorySearch, expected: int):
    """Poll until the node reports ``expected`` hits or give up after a few seconds."""
    hits = []
    for _ in range(20):
        hits = backend.search(pattern, request)
        if len(hits) >= expected:
            break
        time.sleep(0.25)
    return hits


@pytest.fixture
def prefix():
    """Unique index prefix per test; indices are deleted afterwards."""
    value = f"opindex-test-{uuid.uuid4().hex[:8]}-"
    yield value
    requests.delete(f"{NODE_URL.rstrip('/')}/{value}*", timeout=10)


@pytest.fixture
def bridge(prefix, assets):
    settings = Settings(
        mode=OperatingMode.ALL,
        node_url=NODE_URL,
        basic_auth=BASIC_AUTH,
        index_prefix=prefix,
    )
    b = Bridge(settings, assets=assets)
    yield b
    b.close()


def test_index_and_page(bridge, prefix, committed, transfer):
    """Documents written through _bulk come back through _search in order."""
    bridge.on_block(
        1,
        BLOCK_TIME,
        [committed(i, transfer(amount=i * 10000), accounts=["1.2.17", "1.2.18"]) for i in range(1, 21)],
    )
    result = bridge.flush()
    assert result.ok
    assert len(result.items) == 40

    refresh(prefix)
    wait_for_hits(bridge.backend, prefix + "*", HistorySearch(account="1.2.17"), 20)

    page = bridge.get_account_history("1.2.17", stop=0, limit=5, start=0)
    assert [r.id for r in page] == [20, 19, 18, 17, 16]

    page = bridge.get_account_history("1.2.17", stop=10, limit=100, start=13)
    assert [r.id for r in page] == [12, 11, 10]

    assert bridge.get_operation_by_id(7).op == transfer(amount=70000)


def test_reindex_is_idempotent(bridge, prefix, committed, transfer):
    """Replaying a block overwrites documents instead of duplicating them."""
    ops = [committed(i, transfer()) for i in range(1, 4)]
    bridge.on_block(1, BLOCK_TIME, ops)
    bridge.flush()
    bridge.on_block(1, BLOCK_TIME, ops)
    bridge.flush()

    refresh(prefix)
    hits = wait_for_hits(bridge.backend, prefix + "*", HistorySearch(account="1.2.17"), 3)
    assert len(hits) == 3
