"""Tests for account-history pagination."""

import pytest

from opindex.builder import build_document
from opindex.errors import ModeError, OperationNotFoundError, TransportError
from opindex.extract import extract
from opindex.mode import OperatingMode
from opindex.models import AccountHistoryLink, OperationRecord
from opindex.query import MAX_HISTORY_LIMIT, HistoryQueryEngine, decode_document
from opindex.utils import index_name

ALICE = "1.2.17"
BOB = "1.2.18"


@pytest.fixture
def index(memory_backend, transfer, block, assets):
    """Factory storing a transfer document for each (account, operation id)."""

    def add(op_ids, account=ALICE):
        for op_id in op_ids:
            op = transfer(amount=op_id * 1000)
            record = OperationRecord(id=op_id, block_num=op_id, op=op)
            link = AccountHistoryLink(id=op_id, account=account, operation_id=op_id)
            doc = build_document(link, record, block(op_id), extract(op, assets))
            memory_backend.documents[doc.doc_id] = (
                index_name("opindex-", doc.block_data.block_time),
                doc.to_source(),
            )

    return add


@pytest.fixture
def engine(memory_backend):
    return HistoryQueryEngine(memory_backend, OperatingMode.ONLY_QUERY)


def ids(result):
    return [record.id for record in result.records]


class TestBoundaries:
    """Test start/stop cursor semantics."""

    def test_zero_cursors_return_newest_first(self, engine, index):
        index([3, 1, 7, 5])
        assert ids(engine.query(ALICE)) == [7, 5, 3, 1]

    def test_start_is_exclusive(self, engine, index):
        index(range(1, 11))
        assert ids(engine.query(ALICE, start=8, limit=3)) == [7, 6, 5]

    def test_stop_is_inclusive(self, engine, index):
        index(range(1, 11))
        assert ids(engine.query(ALICE, start=8, stop=5)) == [7, 6, 5]

    def test_stop_only(self, engine, index):
        index(range(1, 11))
        assert ids(engine.query(ALICE, stop=9)) == [10, 9]

    def test_fewer_than_limit(self, engine, index):
        index([1, 2])
        assert ids(engine.query(ALICE, limit=50)) == [2, 1]

    def test_inverted_range_is_empty(self, engine, index):
        index(range(40, 90))
        result = engine.query(ALICE, start=50, stop=80)

        assert result.records == []
        assert not result.partial

    def test_equal_cursors_are_empty(self, engine, index):
        index(range(1, 5))
        assert ids(engine.query(ALICE, start=3, stop=3)) == []

    def test_scoped_to_account(self, engine, index):
        index([1, 2, 3], account=ALICE)
        index([4, 5], account=BOB)

        assert ids(engine.query(BOB)) == [5, 4]

    def test_pages_chain(self, engine, index):
        index(range(1, 26))

        seen = []
        start = 0
        while True:
            page = ids(engine.query(ALICE, start=start, limit=10))
            if not page:
                break
            seen.extend(page)
            start = page[-1]

        assert seen == list(range(25, 0, -1))


class TestLimit:
    def test_hard_ceiling(self, engine, index):
        index(range(1, MAX_HISTORY_LIMIT + 21))
        assert len(engine.query(ALICE, limit=1000).records) == MAX_HISTORY_LIMIT

    @pytest.mark.parametrize("limit", [0, -5])
    def test_non_positive_limit(self, engine, index, limit):
        index([1])
        assert engine.query(ALICE, limit=limit).records == []


class TestDecoding:
    """Test reconstruction of records from documents."""

    def test_records_match_what_was_indexed(self, engine, index, transfer):
        index([42])
        record = engine.query(ALICE).records[0]

        assert record.id == 42
        assert record.block_num == 42
        assert record.op == transfer(amount=42000)
        assert record.result == [0, {}]

    def test_side_data_is_returned(self, engine, index):
        index([3])
        result = engine.query(ALICE)

        assert result.side_data[3].type == "transfer"
        assert result.side_data[3].amount_units == 0.03

    def test_undecodable_document_is_skipped(self, engine, index, memory_backend):
        index([1, 2, 3])
        _, source = memory_backend.documents["1.2.17_2"]
        source["operation_history"]["op"] = "[3,{}]"

        result = engine.query(ALICE)

        assert ids(result) == [3, 1]
        assert result.partial
        assert result.skipped[0].doc_id == "1.2.17_2"
        assert result.skipped[0].operation_id == 2
        assert "unknown operation tag" in result.skipped[0].error

    def test_skipped_documents_do_not_use_up_the_page(self, engine, index, memory_backend):
        index([1, 2, 3])
        _, source = memory_backend.documents["1.2.17_3"]
        source["operation_history"]["op"] = "not json"

        result = engine.query(ALICE, limit=1)

        assert ids(result) == [2]
        assert [s.operation_id for s in result.skipped] == [3]
        assert ids(engine.query(ALICE, start=result.oldest_id, limit=1)) == [1]

    def test_paging_past_a_fully_skipped_page(self, engine, index, memory_backend):
        index([1, 2, 3, 4])
        for doc_id in ("1.2.17_3", "1.2.17_4"):
            memory_backend.documents[doc_id][1]["operation_type"] = 9

        result = engine.query(ALICE, start=5, stop=3, limit=2)

        assert result.records == []
        assert result.oldest_id == 3
        assert ids(engine.query(ALICE, start=result.oldest_id, limit=2)) == [2, 1]

    def test_incomplete_document_keeps_its_id(self, engine, index, memory_backend):
        index([1, 2])
        source = memory_backend.documents["1.2.17_2"][1]
        source["operation_history"] = {}

        result = engine.query(ALICE)

        assert ids(result) == [1]
        assert result.skipped[0].operation_id == 2
        assert result.oldest_id == 1

    def test_bad_side_data_keeps_record(self, engine, index, memory_backend):
        index([1])
        _, source = memory_backend.documents["1.2.17_1"]
        source["additional_data"] = {"type": "transfer"}

        result = engine.query(ALICE)

        assert ids(result) == [1]
        assert result.side_data[1].type == "none"

    def test_operation_type_mismatch(self, index, memory_backend):
        index([1])
        _, source = memory_backend.documents["1.2.17_1"]
        source["operation_type"] = 6

        with pytest.raises(ValueError, match="operation type"):
            decode_document(source)


class TestGetOperation:
    def test_found(self, engine, index):
        index([1, 2])
        assert engine.get_operation(2).id == 2

    def test_shared_operation(self, engine, index):
        index([9], account=ALICE)
        index([9], account=BOB)
        assert engine.get_operation(9).id == 9

    def test_not_found(self, engine):
        with pytest.raises(OperationNotFoundError, match="1.11.77"):
            engine.get_operation(77)


class TestModeGating:
    def test_write_only_mode(self, memory_backend):
        engine = HistoryQueryEngine(memory_backend, OperatingMode.ONLY_SAVE)

        with pytest.raises(ModeError):
            engine.query(ALICE)
        with pytest.raises(ModeError):
            engine.get_operation(1)

    def test_all_mode(self, memory_backend, index):
        index([1])
        engine = HistoryQueryEngine(memory_backend, OperatingMode.ALL)
        assert ids(engine.query(ALICE)) == [1]


def test_transport_error_surfaces(engine, memory_backend):
    memory_backend.down = True
    with pytest.raises(TransportError):
        engine.query(ALICE)
