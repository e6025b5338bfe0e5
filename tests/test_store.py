"""Tests for alarm state persistence."""
import sqlite3
import threading

import pytest
import yaml

from calendar_alarm.scheduler import AlarmState, AlarmStore, MemoryStateStore, StoreUnavailable
from conftest import ms


@pytest.fixture
def alarm_store(tmp_path):
    return AlarmStore(tmp_path / "data")


class TestAlarmStore:
    """Tests for the YAML config + SQLite state store."""

    def test_defaults_on_first_access(self, alarm_store):
        state = alarm_store.load()

        assert state == AlarmState()
        assert state.enabled is False
        assert state.offset_minutes == 90
        assert state.last_alarm_fired_at_ms == 0
        assert state.next_alarm() is None
        assert alarm_store.yaml_path.exists()

    def test_default_offset_is_configurable(self, tmp_path):
        store = AlarmStore(tmp_path, default_offset_minutes=45)

        assert store.load().offset_minutes == 45

    def test_runtime_state_persists(self, tmp_path):
        store = AlarmStore(tmp_path)
        state = store.load()
        state.mark_fired(ms(2024, 1, 1, 7, 30))
        state.next_alarm_title = "Standup"
        state.next_alarm_time_ms = ms(2024, 1, 2, 7, 30)
        store.save(state)

        reloaded = AlarmStore(tmp_path).load()

        assert reloaded.last_alarm_fired_at_ms == ms(2024, 1, 1, 7, 30)
        assert reloaded.next_alarm_title == "Standup"
        assert reloaded.next_alarm_time_ms == ms(2024, 1, 2, 7, 30)

    def test_clearing_next_alarm_persists(self, alarm_store):
        state = alarm_store.load()
        state.next_alarm_title = "Standup"
        state.next_alarm_time_ms = ms(2024, 1, 2, 7, 30)
        alarm_store.save(state)

        state.clear_next_alarm()
        alarm_store.save(state)

        assert alarm_store.load().next_alarm() is None

    @pytest.mark.parametrize("offset", [0, 1, 90, 1440, 100000])
    def test_offset_round_trip(self, alarm_store, offset):
        alarm_store.update_config(offset_minutes=offset)

        assert alarm_store.load().offset_minutes == offset

    def test_negative_offset_rejected(self, alarm_store):
        with pytest.raises(ValueError):
            alarm_store.update_config(offset_minutes=-1)

        assert alarm_store.load().offset_minutes == 90

    def test_save_does_not_touch_config(self, alarm_store):
        state = alarm_store.load()
        state.enabled = True
        state.offset_minutes = 5
        alarm_store.save(state)

        reloaded = alarm_store.load()
        assert reloaded.enabled is False
        assert reloaded.offset_minutes == 90

    def test_hand_edited_config_is_read(self, alarm_store):
        alarm_store.load()
        alarm_store.yaml_path.write_text("enabled: true\noffset_minutes: 30\n", encoding="utf-8")

        state = alarm_store.load()

        assert state.enabled is True
        assert state.offset_minutes == 30

    def test_config_file_has_header(self, alarm_store):
        alarm_store.update_config(enabled=True)

        text = alarm_store.yaml_path.read_text(encoding="utf-8")
        assert text.startswith("# Calendar Alarm Configuration")
        assert yaml.safe_load(text) == {"enabled": True, "offset_minutes": 90}

    def test_invalid_yaml_raises_store_unavailable(self, alarm_store):
        alarm_store.data_dir.mkdir(parents=True)
        alarm_store.yaml_path.write_text("enabled: [unclosed\n", encoding="utf-8")

        with pytest.raises(StoreUnavailable):
            alarm_store.load()

    def test_negative_offset_in_file_raises_store_unavailable(self, alarm_store):
        alarm_store.data_dir.mkdir(parents=True)
        alarm_store.yaml_path.write_text("offset_minutes: -5\n", encoding="utf-8")

        with pytest.raises(StoreUnavailable):
            alarm_store.load()

    @pytest.mark.parametrize("value", ['"false"', "'no'", "1", "off please"])
    def test_non_boolean_enabled_raises_store_unavailable(self, alarm_store, value):
        """A quoted "false" must not read as enabled."""
        alarm_store.data_dir.mkdir(parents=True)
        alarm_store.yaml_path.write_text(f"enabled: {value}\n", encoding="utf-8")

        with pytest.raises(StoreUnavailable):
            alarm_store.load()

    def test_corrupt_state_value_raises_store_unavailable(self, alarm_store):
        alarm_store.load()
        with sqlite3.connect(str(alarm_store.db_path)) as db:
            db.executemany(
                "INSERT OR REPLACE INTO alarm_state (key, value) VALUES (?, ?)",
                [("next_alarm_title", "Standup"), ("next_alarm_time_ms", "abc")],
            )
        db.close()

        with pytest.raises(StoreUnavailable):
            alarm_store.load()

    def test_stale_save_cannot_lower_last_fired(self, tmp_path):
        """A writer holding an old copy cannot roll back a recorded ring."""
        daemon = AlarmStore(tmp_path)
        cli = AlarmStore(tmp_path)
        stale = cli.load()

        fired = daemon.load()
        fired.mark_fired(ms(2024, 1, 1, 7, 30))
        daemon.save(fired)
        cli.save(stale)

        assert daemon.load().last_alarm_fired_at_ms == ms(2024, 1, 1, 7, 30)

    def test_transaction_blocks_other_writers(self, tmp_path):
        first = AlarmStore(tmp_path)
        second = AlarmStore(tmp_path)
        first.load()
        saved = threading.Event()

        def write():
            state = second.load()
            state.mark_fired(ms(2024, 1, 1, 7, 30))
            second.save(state)
            saved.set()

        with first.transaction():
            state = first.load()
            writer = threading.Thread(target=write)
            writer.start()
            assert not saved.wait(0.3)
            first.save(state)
        writer.join(5)

        assert saved.is_set()
        assert first.load().last_alarm_fired_at_ms == ms(2024, 1, 1, 7, 30)

    def test_failed_transaction_rolls_back(self, alarm_store):
        alarm_store.load()

        with pytest.raises(RuntimeError):
            with alarm_store.transaction():
                state = alarm_store.load()
                state.mark_fired(ms(2024, 1, 1, 7, 30))
                alarm_store.save(state)
                raise RuntimeError("compute failed")

        assert alarm_store.load().last_alarm_fired_at_ms == 0

    def test_unwritable_location_raises_store_unavailable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = AlarmStore(blocker / "data")

        with pytest.raises(StoreUnavailable):
            store.load()

    def test_config_mtime(self, alarm_store):
        assert alarm_store.config_mtime() is None
        alarm_store.load()
        assert alarm_store.config_mtime() is not None


class TestMemoryStateStore:
    """Tests for the in-memory store."""

    def test_load_returns_copy(self):
        store = MemoryStateStore()
        state = store.load()
        state.next_alarm_title = "Standup"
        state.next_alarm_time_ms = 1

        assert store.load().next_alarm() is None

    def test_stale_save_cannot_lower_last_fired(self):
        store = MemoryStateStore()
        stale = store.load()
        fired = store.load()
        fired.mark_fired(ms(2024, 1, 1, 7, 30))

        store.save(fired)
        store.save(stale)

        assert store.load().last_alarm_fired_at_ms == ms(2024, 1, 1, 7, 30)

    def test_update_config(self):
        store = MemoryStateStore()

        state = store.update_config(enabled=True, offset_minutes=15)

        assert state.enabled is True
        assert store.load().offset_minutes == 15

    @pytest.mark.parametrize("offset", [-1, 1.5, True])
    def test_invalid_offset_rejected(self, offset):
        store = MemoryStateStore()

        with pytest.raises(ValueError):
            store.update_config(offset_minutes=offset)


class TestAlarmState:
    """Tests for the AlarmState model."""

    def test_mark_fired_is_monotonic(self):
        state = AlarmState(last_alarm_fired_at_ms=100)

        state.mark_fired(50)
        assert state.last_alarm_fired_at_ms == 100
        state.mark_fired(200)
        assert state.last_alarm_fired_at_ms == 200

    def test_half_pair_is_no_alarm(self):
        state = AlarmState.from_dict({"next_alarm_title": "Standup"})

        assert state.next_alarm_title is None
        assert state.next_alarm_time_ms is None

    def test_from_dict_parses_stored_strings(self):
        state = AlarmState.from_dict({
            "enabled": True,
            "offset_minutes": 60,
            "last_alarm_fired_at_ms": "1000",
            "next_alarm_title": "Standup",
            "next_alarm_time_ms": "5000",
        })

        assert state.last_alarm_fired_at_ms == 1000
        alarm = state.next_alarm()
        assert alarm.alarm_time_ms == 5000
        assert alarm.event_time_ms == 5000 + 60 * 60 * 1000

    def test_to_dict_round_trip(self):
        state = AlarmState(enabled=True, offset_minutes=30, next_alarm_title="A", next_alarm_time_ms=7)

        assert AlarmState.from_dict(state.to_dict()) == state
