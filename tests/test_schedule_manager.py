"""Tests for ScheduleManager: medicines, supersession and restore."""

from datetime import UTC, datetime

from homeassistant.core import HomeAssistant
import pytest

from custom_components.medreminder import const
from custom_components.medreminder.engines.recurrence_engine import (
    RecurrenceError,
    ScheduleSpecError,
)
from custom_components.medreminder.managers.reminder_manager import ReminderManager
from custom_components.medreminder.managers.schedule_manager import ScheduleManager
from tests.helpers import FakeDispatcher, InMemoryKeyValueStore, make_spec

JAN_1 = datetime(2026, 1, 1, tzinfo=UTC)
NEW_YORK = "America/New_York"


def build_manager(
    hass: HomeAssistant, store: InMemoryKeyValueStore, dispatcher: FakeDispatcher
) -> ScheduleManager:
    """Return a schedule manager issuing five occurrences per schedule."""
    reminders = ReminderManager(hass, "test_entry_id", store, dispatcher)
    return ScheduleManager(hass, "test_entry_id", store, reminders, occurrence_count=5)


@pytest.fixture
async def manager(
    hass: HomeAssistant,
    fake_store: InMemoryKeyValueStore,
    fake_dispatcher: FakeDispatcher,
) -> ScheduleManager:
    """Return a set-up schedule manager over an empty store."""
    schedules = build_manager(hass, fake_store, fake_dispatcher)
    await schedules.async_setup()
    return schedules


async def add_aspirin(manager: ScheduleManager, dose_times: list[str]) -> dict:
    return await manager.async_add_medicine(
        medicine_id="aspirin",
        name="Aspirin",
        frequency="daily",
        dose_times=dose_times,
        start_date="2026-01-05",
        timezone=NEW_YORK,
        now=JAN_1,
    )


class TestMedicines:
    """Test adding, editing and removing medicines."""

    async def test_add_medicine_issues_one_schedule_per_dose_time(
        self, manager, fake_store, fake_dispatcher
    ) -> None:
        medicine = await add_aspirin(manager, ["8pm", "08:00"])

        assert medicine[const.DATA_MEDICINE_DOSE_TIMES] == ["08:00", "20:00"]
        assert medicine[const.DATA_MEDICINE_SCHEDULE_IDS] == ["aspirin-0", "aspirin-1"]
        assert medicine[const.DATA_MEDICINE_FREQUENCY] == const.FREQUENCY_DAILY
        assert manager.schedule_ids == ["aspirin-0", "aspirin-1"]
        assert len(fake_dispatcher.scheduled) == 10
        assert fake_store.data[const.STORE_KEY_MEDICINES]["aspirin"] == medicine
        assert set(fake_store.data[const.STORE_KEY_SCHEDULES]) == {
            "aspirin-0",
            "aspirin-1",
        }
        assert manager.get_medicine_name("aspirin") == "Aspirin"

    async def test_edit_supersedes_previous_schedules(
        self, manager, fake_store, fake_dispatcher
    ) -> None:
        await add_aspirin(manager, ["08:00", "20:00"])

        medicine = await add_aspirin(manager, ["09:00"])

        assert medicine[const.DATA_MEDICINE_SCHEDULE_IDS] == ["aspirin-0"]
        assert manager.schedule_ids == ["aspirin-0"]
        assert len(fake_dispatcher.cancelled) == 10
        assert len(fake_dispatcher.scheduled) == 5
        assert {trigger.hour for trigger in fake_dispatcher.triggers} == {9}
        assert "schedule:aspirin-1" not in fake_store.data

    async def test_remove_medicine_cancels_everything(
        self, manager, fake_store, fake_dispatcher
    ) -> None:
        await add_aspirin(manager, ["08:00", "20:00"])

        await manager.async_remove_medicine("aspirin")

        assert manager.medicines == {}
        assert manager.schedules == {}
        assert fake_dispatcher.scheduled == {}
        assert fake_store.data[const.STORE_KEY_MEDICINES] == {}
        assert manager.get_medicine_name("aspirin") == const.DISPLAY_UNKNOWN_MEDICINE

    async def test_remove_unknown_medicine_raises(self, manager) -> None:
        with pytest.raises(ValueError, match="not found"):
            await manager.async_remove_medicine("ghost")

    @pytest.mark.parametrize(
        ("kwargs", "error"),
        [
            ({"frequency": "hourly"}, RecurrenceError),
            ({"timezone": "Mars/Olympus"}, RecurrenceError),
            ({"dose_times": []}, ScheduleSpecError),
            ({"dose_times": ["lunchtime"]}, ValueError),
        ],
    )
    async def test_invalid_medicine_is_rejected(
        self, manager, fake_dispatcher, kwargs, error
    ) -> None:
        args = {
            "medicine_id": "aspirin",
            "name": "Aspirin",
            "frequency": "daily",
            "dose_times": ["08:00"],
            "start_date": "2026-01-05",
            "timezone": NEW_YORK,
            "now": JAN_1,
        }
        args.update(kwargs)

        with pytest.raises(error):
            await manager.async_add_medicine(**args)

        assert fake_dispatcher.scheduled == {}
        assert manager.medicines == {}


class TestRawSchedules:
    """Test registering schedule specs directly."""

    async def test_register_and_unregister(self, manager, fake_dispatcher) -> None:
        handles = await manager.async_register_schedule(
            make_spec("vitd-0", rrule="FREQ=WEEKLY;BYDAY=MO"), now=JAN_1
        )

        assert len(handles) == 5
        assert manager.schedule_ids == ["vitd-0"]

        await manager.async_unregister_schedule("vitd-0")

        assert manager.schedule_ids == []
        assert fake_dispatcher.scheduled == {}

    async def test_unregister_detaches_from_medicine(self, manager) -> None:
        await add_aspirin(manager, ["08:00", "20:00"])

        await manager.async_unregister_schedule("aspirin-1")

        assert manager.medicines["aspirin"][const.DATA_MEDICINE_SCHEDULE_IDS] == [
            "aspirin-0"
        ]

    async def test_register_invalid_spec_raises(self, manager) -> None:
        with pytest.raises(ScheduleSpecError):
            await manager.async_register_schedule(make_spec(rrule=""), now=JAN_1)
        assert manager.schedules == {}


class TestRestore:
    """Test re-issuing persisted schedules after a restart."""

    async def test_restore_reissues_persisted_schedules(
        self, hass: HomeAssistant
    ) -> None:
        store = InMemoryKeyValueStore(
            {
                const.STORE_KEY_SCHEDULES: {
                    "aspirin-0": make_spec("aspirin-0"),
                    "broken-0": make_spec("broken-0", rrule="FREQ=SOMETIMES"),
                }
            }
        )
        dispatcher = FakeDispatcher()
        manager = build_manager(hass, store, dispatcher)
        await manager.async_setup()

        restored = await manager.async_restore(now=JAN_1)

        assert restored == 1
        assert len(dispatcher.scheduled) == 5
        assert len(store.data["schedule:aspirin-0"]) == 5

    async def test_malformed_storage_starts_empty(self, hass: HomeAssistant) -> None:
        store = InMemoryKeyValueStore(
            {const.STORE_KEY_MEDICINES: ["bad"], const.STORE_KEY_SCHEDULES: "bad"}
        )
        manager = build_manager(hass, store, FakeDispatcher())

        await manager.async_setup()

        assert manager.medicines == {}
        assert manager.schedules == {}
        assert await manager.async_restore(now=JAN_1) == 0

    async def test_restart_keeps_delivered_reminder_actionable(
        self, hass: HomeAssistant, fake_store, fake_dispatcher
    ) -> None:
        reminders = ReminderManager(hass, "test_entry_id", fake_store, fake_dispatcher)
        first_run = ScheduleManager(
            hass, "test_entry_id", fake_store, reminders, occurrence_count=5
        )
        await first_run.async_setup()
        await add_aspirin(first_run, ["08:00"])
        await reminders.async_mark_triggered("aspirin-0", "handle-1")

        restored = ReminderManager(
            hass, "test_entry_id", fake_store, FakeDispatcher(_counter=100)
        )
        second_run = ScheduleManager(
            hass, "test_entry_id", fake_store, restored, occurrence_count=5
        )
        await second_run.async_setup()
        assert await second_run.async_restore(now=JAN_1) == 1

        pending = await restored.async_get_pending_reminders(["aspirin-0"])
        assert [r[const.DATA_REMINDER_ID] for r in pending] == ["handle-1"]
        completed = await restored.async_mark_completed("aspirin-0", "handle-1")
        assert completed is not None

    async def test_restore_applies_configured_occurrence_count(
        self, hass: HomeAssistant, fake_store, fake_dispatcher
    ) -> None:
        """Medicine schedules follow the option; raw schedules keep their count."""
        first_run = build_manager(hass, fake_store, fake_dispatcher)
        await first_run.async_setup()
        await add_aspirin(first_run, ["08:00"])
        await first_run.async_register_schedule(
            make_spec("vitd-0", occurrence_count=2), now=JAN_1
        )

        reminders = ReminderManager(hass, "test_entry_id", fake_store, FakeDispatcher())
        second_run = ScheduleManager(
            hass, "test_entry_id", fake_store, reminders, occurrence_count=3
        )
        await second_run.async_setup()
        await second_run.async_restore(now=JAN_1)

        assert len(fake_store.data["schedule:aspirin-0"]) == 3
        assert len(fake_store.data["schedule:vitd-0"]) == 2
        stored = fake_store.data[const.STORE_KEY_SCHEDULES]
        assert stored["aspirin-0"][const.DATA_SCHEDULE_OCCURRENCE_COUNT] == 3
        assert stored["vitd-0"][const.DATA_SCHEDULE_OCCURRENCE_COUNT] == 2
