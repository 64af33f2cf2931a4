"""Operating modes and the capability checks they gate."""

from enum import Enum

from opindex.errors import ModeError


class OperatingMode(str, Enum):
    """Which half of the bridge a process runs."""

    ONLY_SAVE = "only_save"
    ONLY_QUERY = "only_query"
    ALL = "all"

    @property
    def can_write(self) -> bool:
        return self in (OperatingMode.ONLY_SAVE, OperatingMode.ALL)

    @property
    def can_read(self) -> bool:
        return self in (OperatingMode.ONLY_QUERY, OperatingMode.ALL)


class ModeController:
    """Holds the process operating mode, fixed at construction."""

    def __init__(self, mode: OperatingMode = OperatingMode.ONLY_SAVE):
        self._mode = OperatingMode(mode)

    @property
    def mode(self) -> OperatingMode:
        """Get the operating mode."""
        return self._mode

    def require_write(self) -> None:
        """Raise ModeError unless indexing is enabled."""
        if not self._mode.can_write:
            raise ModeError(f"indexing is disabled in {self._mode.value} mode")

    def require_read(self) -> None:
        """Raise ModeError unless history queries are enabled."""
        if not self._mode.can_read:
            raise ModeError(f"history queries are disabled in {self._mode.value} mode")
