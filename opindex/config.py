"""Settings, the Bridge facade and global configuration for opindex."""

import logging
import os
from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from opindex.backends import SearchBackend
from opindex.backends.http import HTTPBackend
from opindex.backends.sql import SQLBackend
from opindex.extract import AssetRegistry, StaticAssetRegistry
from opindex.indexer import Indexer
from opindex.mode import ModeController, OperatingMode
from opindex.models import BulkResult, CommittedOperation, HistoryResult, OperationRecord
from opindex.query import MAX_HISTORY_LIMIT, HistoryQueryEngine
from opindex.writer import IndexWriter

logger = logging.getLogger(__name__)

ENV_PREFIX = "OPINDEX_"

_SQL_SCHEMES = ("sqlite", "postgresql", "mysql")

# Global default bridge
_default_bridge: Optional["Bridge"] = None


class Settings(BaseModel):
    """Runtime settings of a bridge instance."""

    mode: OperatingMode = OperatingMode.ONLY_SAVE
    node_url: str = "http://localhost:9200/"
    basic_auth: Optional[str] = None
    index_prefix: str = "opindex-"
    bulk_replay: int = Field(default=10000, ge=1)
    bulk_sync: int = Field(default=100, ge=1)
    visitor: bool = True
    operation_object: bool = True
    start_after_block: int = Field(default=0, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "Settings":
        """Build settings from ``OPINDEX_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``. When omitted,
                a ``.env`` file is loaded into the environment first.
            dotenv_path: Explicit path of the ``.env`` file.

        Raises:
            pydantic.ValidationError: If a value does not validate.
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls.model_validate(values)


def backend_from_settings(settings: Settings) -> SearchBackend:
    """A SQL store for SQLAlchemy URLs, the HTTP backend otherwise."""
    if settings.node_url.split(":", 1)[0].split("+", 1)[0] in _SQL_SCHEMES:
        return SQLBackend(settings.node_url)
    return HTTPBackend(
        settings.node_url,
        basic_auth=settings.basic_auth,
        timeout=settings.request_timeout,
    )


class Bridge:
    """Write and read paths of one bridge instance.

    Use this class when you need several bridges or explicit control. For
    simple cases, use the global configure() and the functions in
    :mod:`opindex.history`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Union[str, SearchBackend, None] = None,
        assets: Union[AssetRegistry, Iterable, None] = None,
    ):
        """Initialize a bridge.

        Args:
            settings: Runtime settings; defaults apply when omitted.
            backend: A SearchBackend, a connection string, or None to build
                one from ``settings.node_url``.
            assets: Asset registry, or an iterable of AssetInfo.
        """
        self._settings = settings or Settings()

        if isinstance(backend, str):
            backend = backend_from_settings(self._settings.model_copy(update={"node_url": backend}))
        self._backend = backend or backend_from_settings(self._settings)

        if not isinstance(assets, AssetRegistry):
            assets = StaticAssetRegistry(assets or ())
        self._assets = assets

        self._modes = ModeController(self._settings.mode)
        logger.info("Running in %s mode", self._modes.mode.value)

        self._writer = IndexWriter(
            self._backend,
            self._modes.mode,
            index_prefix=self._settings.index_prefix,
            batch_size=self._settings.bulk_sync,
        )
        self._indexer = Indexer(
            self._writer,
            self._assets,
            visitor=self._settings.visitor,
            operation_object=self._settings.operation_object,
            start_after_block=self._settings.start_after_block,
            bulk_replay=self._settings.bulk_replay,
            bulk_sync=self._settings.bulk_sync,
        )
        self._queries = HistoryQueryEngine(
            self._backend,
            self._modes.mode,
            index_prefix=self._settings.index_prefix,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def backend(self) -> SearchBackend:
        return self._backend

    @property
    def assets(self) -> AssetRegistry:
        return self._assets

    @property
    def writer(self) -> IndexWriter:
        return self._writer

    @property
    def indexer(self) -> Indexer:
        return self._indexer

    @property
    def queries(self) -> HistoryQueryEngine:
        return self._queries

    def on_block(
        self,
        block_num: int,
        block_time: datetime,
        operations: Iterable[CommittedOperation],
    ) -> BulkResult:
        """Index one committed block. See :meth:`Indexer.on_block`."""
        return self._indexer.on_block(block_num, block_time, operations)

    def flush(self) -> BulkResult:
        """Write every buffered document and wait for the outcome."""
        return self._writer.flush()

    def close(self) -> BulkResult:
        """Flush and release the writer."""
        return self._writer.close()

    def get_operation_by_id(self, operation_id: int) -> OperationRecord:
        return self._queries.get_operation(operation_id)

    def get_account_history(
        self,
        account: str,
        stop: int = 0,
        limit: int = MAX_HISTORY_LIMIT,
        start: int = 0,
    ) -> List[OperationRecord]:
        """Operations of ``account`` with ``stop <= id < start``, newest first."""
        return self.account_history(account, stop=stop, limit=limit, start=start).records

    def account_history(
        self,
        account: str,
        stop: int = 0,
        limit: int = MAX_HISTORY_LIMIT,
        start: int = 0,
    ) -> HistoryResult:
        """Like get_account_history() but also reports skipped documents."""
        return self._queries.query(account, start=start, stop=stop, limit=limit)

    def get_running_mode(self) -> OperatingMode:
        return self._modes.mode


def configure(
    settings: Optional[Settings] = None,
    backend: Union[str, SearchBackend, None] = None,
    assets: Union[AssetRegistry, Iterable, None] = None,
) -> Bridge:
    """Configure the global default bridge.

    Must be called before the functions in :mod:`opindex.history` are used.

    Returns:
        The configured Bridge instance.
    """
    global _default_bridge
    if _default_bridge is not None:
        _default_bridge.close()
    _default_bridge = Bridge(settings=settings, backend=backend, assets=assets)
    return _default_bridge


def get_bridge() -> Bridge:
    """Get the global default bridge.

    Raises:
        RuntimeError: If configure() has not been called.
    """
    if _default_bridge is None:
        raise RuntimeError(
            "opindex not configured. Call configure() first."
        )
    return _default_bridge
