"""Hybrid YAML config + SQLite state store for the alarm.

Architecture:
- YAML file (alarm.yaml): user configuration (user-editable)
  Contains: enabled, offset_minutes
- SQLite database (alarm_state.db): runtime state (program-owned)
  Contains: last_alarm_fired_at_ms, next_alarm_title, next_alarm_time_ms

The engine loads the whole AlarmState at the start of an operation and
saves it back at the end, inside ``transaction()``. The daemon and CLI
commands run in separate processes against the same database, so the
transaction holds SQLite's write lock from load to save. ``save`` only
writes runtime state; configuration changes go through ``update_config``.
"""
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Iterator, Protocol

import yaml
from loguru import logger

from ..errors import StoreUnavailable
from ..models import AlarmState, DEFAULT_OFFSET_MINUTES

logger = logger.bind(module="scheduler.store")

# ============== SQL Schema ==============

_INIT_SQL = """
CREATE TABLE IF NOT EXISTS alarm_state (
    key           TEXT PRIMARY KEY,
    value         TEXT
);
"""

_STATE_KEYS = ("last_alarm_fired_at_ms", "next_alarm_title", "next_alarm_time_ms")

# The last ring time never moves backwards, whoever writes it
_UPSERT_SQL = """
INSERT INTO alarm_state (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET value = CASE
    WHEN key = 'last_alarm_fired_at_ms'
    THEN CAST(MAX(CAST(value AS INTEGER), CAST(excluded.value AS INTEGER)) AS TEXT)
    ELSE excluded.value
END
"""

# Seconds a writer waits for another process to release the database
BUSY_TIMEOUT_SECONDS = 30.0


class StateStore(Protocol):
    """Protocol for persisted alarm state."""

    def transaction(self) -> ContextManager[None]:
        """Serialize a load-compute-save pass against other writers."""
        ...

    def load(self) -> AlarmState:
        """Read the full state, creating defaults on first access."""
        ...

    def save(self, state: AlarmState) -> None:
        """Commit the runtime fields of ``state``."""
        ...

    def update_config(
        self,
        enabled: bool | None = None,
        offset_minutes: int | None = None,
    ) -> AlarmState:
        """Change user configuration and return the new state."""
        ...


def _validate_offset(offset_minutes: int) -> int:
    if isinstance(offset_minutes, bool) or not isinstance(offset_minutes, int):
        raise ValueError(f"Offset must be an integer, got {offset_minutes!r}")
    if offset_minutes < 0:
        raise ValueError(f"Offset must be non-negative, got {offset_minutes}")
    return offset_minutes


class MemoryStateStore:
    """Dict-backed state store for tests and embedding hosts."""

    def __init__(self, state: AlarmState | None = None):
        self._state = (state or AlarmState()).copy()
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def load(self) -> AlarmState:
        return self._state.copy()

    def save(self, state: AlarmState) -> None:
        # Configuration is owned by update_config
        self._state.last_alarm_fired_at_ms = max(
            self._state.last_alarm_fired_at_ms, state.last_alarm_fired_at_ms
        )
        self._state.next_alarm_title = state.next_alarm_title
        self._state.next_alarm_time_ms = state.next_alarm_time_ms

    def update_config(
        self,
        enabled: bool | None = None,
        offset_minutes: int | None = None,
    ) -> AlarmState:
        if offset_minutes is not None:
            self._state.offset_minutes = _validate_offset(offset_minutes)
        if enabled is not None:
            self._state.enabled = bool(enabled)
        return self._state.copy()


class AlarmStore:
    """Hybrid YAML config + SQLite state store.

    Outside a transaction each call opens and closes its own SQLite
    connection, so the store can be used from the scheduler's worker
    threads. Inside ``transaction()`` the calling thread reuses one
    connection holding the write lock.
    """

    def __init__(self, data_dir: str | Path, default_offset_minutes: int = DEFAULT_OFFSET_MINUTES):
        """Initialize store.

        Args:
            data_dir: Directory to store alarm.yaml and alarm_state.db
            default_offset_minutes: Offset used until one is configured
        """
        self.data_dir = Path(data_dir).expanduser()
        self.yaml_path = self.data_dir / "alarm.yaml"
        self.db_path = self.data_dir / "alarm_state.db"
        self.default_offset_minutes = _validate_offset(default_offset_minutes)
        self._local = threading.local()

    # ============== Connection ==============

    def _connect(self) -> sqlite3.Connection:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are begun and ended explicitly
        db = sqlite3.connect(
            str(self.db_path),
            timeout=BUSY_TIMEOUT_SECONDS,
            isolation_level=None,
        )
        db.row_factory = sqlite3.Row
        db.execute("PRAGMA journal_mode=WAL")
        db.execute("PRAGMA synchronous=NORMAL")
        db.executescript(_INIT_SQL)
        return db

    def _current(self) -> sqlite3.Connection | None:
        return getattr(self._local, "db", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the database write lock across a load-compute-save pass.

        Other processes block in their own ``transaction()`` until this one
        commits, so they always load the state this pass saved. Nested use
        on the same thread joins the outer transaction.
        """
        if self._current() is not None:
            yield
            return

        try:
            db = self._connect()
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailable(f"Failed to open alarm state: {e}") from e
        try:
            db.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            db.close()
            raise StoreUnavailable(f"Failed to lock alarm state: {e}") from e

        self._local.db = db
        try:
            yield
        except BaseException:
            if db.in_transaction:
                db.execute("ROLLBACK")
            raise
        else:
            try:
                db.execute("COMMIT")
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Failed to commit alarm state: {e}") from e
        finally:
            self._local.db = None
            db.close()

    # ============== YAML I/O ==============

    def _read_config(self) -> dict[str, Any]:
        """Load user configuration, writing defaults on first access."""
        if not self.yaml_path.exists():
            config = {"enabled": False, "offset_minutes": self.default_offset_minutes}
            self._write_config(config)
            return config

        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise StoreUnavailable(f"Invalid config in {self.yaml_path}")

        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise StoreUnavailable(
                f"Invalid enabled in {self.yaml_path}: expected true or false, got {enabled!r}"
            )
        offset = data.get("offset_minutes", self.default_offset_minutes)
        try:
            offset = _validate_offset(offset)
        except ValueError as e:
            raise StoreUnavailable(f"Invalid offset in {self.yaml_path}: {e}") from e
        return {"enabled": enabled, "offset_minutes": offset}

    def _write_config(self, config: dict[str, Any]) -> None:
        """Write user configuration to YAML file (atomic)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.yaml_path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write("# Calendar Alarm Configuration\n")
            f.write("# enabled: ring before the first event of each day\n")
            f.write("# offset_minutes: how long before the event to ring\n\n")
            yaml.dump(
                config,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        temp_path.replace(self.yaml_path)

    def config_mtime(self) -> float | None:
        """Modification time of alarm.yaml, used to detect hand edits."""
        try:
            return self.yaml_path.stat().st_mtime
        except FileNotFoundError:
            return None

    # ============== State ==============

    def load(self) -> AlarmState:
        try:
            config = self._read_config()
            db = self._current()
            if db is not None:
                rows = db.execute("SELECT key, value FROM alarm_state").fetchall()
            else:
                db = self._connect()
                try:
                    rows = db.execute("SELECT key, value FROM alarm_state").fetchall()
                finally:
                    db.close()
        except (OSError, sqlite3.Error, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Failed to load alarm state: {e}") from e

        data: dict[str, Any] = dict(config)
        data.update({row["key"]: row["value"] for row in rows})
        try:
            return AlarmState.from_dict(data)
        except (TypeError, ValueError) as e:
            raise StoreUnavailable(f"Corrupt alarm state in {self.db_path}: {e}") from e

    def save(self, state: AlarmState) -> None:
        values = {
            "last_alarm_fired_at_ms": str(state.last_alarm_fired_at_ms),
            "next_alarm_title": state.next_alarm_title,
            "next_alarm_time_ms": (
                str(state.next_alarm_time_ms)
                if state.next_alarm_time_ms is not None else None
            ),
        }
        with self.transaction():
            try:
                self._current().executemany(
                    _UPSERT_SQL,
                    [(key, values[key]) for key in _STATE_KEYS],
                )
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Failed to save alarm state: {e}") from e
        logger.debug(f"Saved alarm state: {values}")

    def update_config(
        self,
        enabled: bool | None = None,
        offset_minutes: int | None = None,
    ) -> AlarmState:
        if offset_minutes is not None:
            _validate_offset(offset_minutes)
        try:
            config = self._read_config()
            if enabled is not None:
                config["enabled"] = bool(enabled)
            if offset_minutes is not None:
                config["offset_minutes"] = offset_minutes
            self._write_config(config)
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Failed to update config: {e}") from e
        logger.info(f"Config updated: {config}")
        return self.load()
