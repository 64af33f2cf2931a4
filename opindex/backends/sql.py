"""SQLAlchemy-based document store standing in for a search engine."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from opindex.backends import HistorySearch, IndexAction, SearchHit
from opindex.errors import TransportError
from opindex.models import BulkItem

logger = logging.getLogger(__name__)


class SQLBackend:
    """SQLAlchemy Core backend supporting SQLite and PostgreSQL.

    Documents live in one table keyed by document id; re-indexing an id
    replaces the stored row.
    """

    def __init__(
        self,
        connection_string: str,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        """Initialize the SQL backend.

        Args:
            connection_string: Database connection string (sqlite:/// or postgresql://)
            pool_size: Connection pool size (ignored for SQLite)
            max_overflow: Max overflow connections (ignored for SQLite)
        """
        self._connection_string = connection_string
        self._is_sqlite = connection_string.startswith("sqlite")

        # For SQLite, ensure parent directories exist
        if self._is_sqlite:
            db_path = connection_string.replace("sqlite:///", "")
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        if self._is_sqlite:
            self._engine: Engine = create_engine(
                connection_string,
                connect_args={"check_same_thread": False},
            )
        else:
            self._engine = create_engine(
                connection_string,
                pool_size=pool_size,
                max_overflow=max_overflow,
            )

        self._metadata = MetaData()
        self._documents = Table(
            "documents",
            self._metadata,
            Column("doc_id", String(255), primary_key=True),
            Column("index_name", String(255), nullable=False),
            Column("account", String(64), nullable=False),
            Column("operation_id_num", BigInteger, nullable=False),
            Column("operation_type", Integer, nullable=False),
            Column("block_num", BigInteger, nullable=False),
            Column("block_time", DateTime, nullable=False),
            Column("source", JSON, nullable=False),
        )

        self.init_schema()

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self._metadata.create_all(self._engine)

        indexes = [
            Index(
                "idx_documents_account_op",
                self._documents.c.account,
                self._documents.c.operation_id_num,
            ),
            Index("idx_documents_op", self._documents.c.operation_id_num),
            Index("idx_documents_index", self._documents.c.index_name),
        ]
        for idx in indexes:
            idx.create(self._engine, checkfirst=True)

    def bulk(self, actions: List[IndexAction]) -> List[BulkItem]:
        """Upsert documents. Returns one item per action, in order."""
        items: List[BulkItem] = []
        rows: Dict[str, Dict[str, Any]] = {}

        for action in actions:
            try:
                rows[action.doc_id] = self._action_to_row(action)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug("Rejecting document %s: %r", action.doc_id, e)
                items.append(BulkItem(doc_id=action.doc_id, ok=False, error=f"mapping error: {e}"))
            else:
                items.append(BulkItem(doc_id=action.doc_id, ok=True))

        if not rows:
            return items

        try:
            with self._engine.begin() as conn:
                conn.execute(
                    delete(self._documents).where(
                        self._documents.c.doc_id.in_(list(rows))
                    )
                )
                conn.execute(insert(self._documents), list(rows.values()))
        except SQLAlchemyError as e:
            raise TransportError(f"bulk write of {len(rows)} documents failed: {e}") from e

        return items

    def search(self, index_pattern: str, request: HistorySearch) -> List[SearchHit]:
        """Find documents, sorted by operation id descending."""
        t = self._documents
        stmt = select(t.c.doc_id, t.c.source)

        if index_pattern.endswith("*"):
            stmt = stmt.where(t.c.index_name.startswith(index_pattern[:-1], autoescape=True))
        else:
            stmt = stmt.where(t.c.index_name == index_pattern)
        if request.account is not None:
            stmt = stmt.where(t.c.account == request.account)
        if request.operation_id is not None:
            stmt = stmt.where(t.c.operation_id_num == request.operation_id)
        if request.min_id is not None:
            stmt = stmt.where(t.c.operation_id_num >= request.min_id)
        if request.max_id is not None:
            stmt = stmt.where(t.c.operation_id_num < request.max_id)

        stmt = stmt.order_by(t.c.operation_id_num.desc(), t.c.doc_id).limit(request.size)

        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"search failed: {e}") from e

        return [self._row_to_hit(row._mapping) for row in rows]

    def _action_to_row(self, action: IndexAction) -> Dict[str, Any]:
        """Convert an index action to a database row dict."""
        source = action.source
        block_time = source["block_data"]["block_time"]
        if isinstance(block_time, str):
            block_time = datetime.fromisoformat(block_time.replace("Z", "+00:00"))
        if block_time.tzinfo is not None:
            block_time = block_time.astimezone(timezone.utc).replace(tzinfo=None)

        return {
            "doc_id": action.doc_id,
            "index_name": action.index,
            "account": source["account_history"]["account"],
            "operation_id_num": int(source["operation_id_num"]),
            "operation_type": int(source["operation_type"]),
            "block_num": int(source["block_data"]["block_num"]),
            "block_time": block_time,
            "source": source,
        }

    def _row_to_hit(self, row: Dict[str, Any]) -> SearchHit:
        """Convert a database row to a search hit."""
        source = row["source"]
        if isinstance(source, str):
            source = json.loads(source)
        return SearchHit(doc_id=row["doc_id"], source=source)
