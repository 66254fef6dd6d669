# File: managers/adherence_manager.py
"""Adherence Manager - Owns the dose-outcome ledger.

The ledger is one mapping persisted under "adherence_history":
    "{medicine_id}-{YYYY-MM-DD}-{HH:MM}" → AdherenceRecord

Every write replaces the in-memory snapshot with a new mapping built by the
AdherenceEngine and persists the whole ledger, under a single lock so that
concurrent writers never lose each other's records.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from .. import const
from ..engines.adherence_engine import AdherenceEngine
from ..utils.dt_utils import date_key, get_time_zone, normalize_time_of_day
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date, tzinfo

    from homeassistant.core import HomeAssistant

    from ..store import KeyValueStore
    from ..type_defs import AdherenceHistory, AdherenceRecord, RecordsMapping


class AdherenceManager(BaseManager):
    """Manager for recording and reading dose outcomes.

    Dose slots are keyed in the zone of their medicine, looked up through
    `timezone_for`, so an aware time reported from anywhere lands on the
    same local slot the schedule expects.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        store: KeyValueStore,
        timezone_for: Callable[[str], str | None] | None = None,
    ) -> None:
        """Initialize adherence manager.

        Args:
            hass: Home Assistant instance
            entry_id: Config entry id scoping events
            store: Key-value store for the ledger
            timezone_for: Returns a medicine's zone name, None for the default
        """
        super().__init__(hass, entry_id)
        self._store = store
        self._timezone_for = timezone_for
        self._records: AdherenceHistory = {}
        self._lock = asyncio.Lock()

    async def async_setup(self) -> None:
        """Load the persisted ledger. Unreadable data starts an empty ledger."""
        try:
            stored = await self._store.async_get(const.STORE_KEY_ADHERENCE_HISTORY)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to load adherence history: %s", err)
            stored = None

        if stored is None:
            self._records = {}
        elif not isinstance(stored, dict):
            const.LOGGER.error(
                "ERROR: Ignoring malformed adherence history: %s",
                type(stored).__name__,
            )
            self._records = {}
        else:
            self._records = {
                key: record
                for key, record in stored.items()
                if isinstance(record, dict)
            }

        const.LOGGER.debug(
            "DEBUG: Loaded %d adherence records", len(self._records)
        )

    @property
    def records(self) -> RecordsMapping:
        """Return the current ledger snapshot (read-only)."""
        return self._records

    def get_taken(
        self, medicine_id: str, day: str | date, time_value: Any
    ) -> bool | None:
        """Return the recorded outcome of a dose slot, or None if unrecorded."""
        tz = self._zone_for(medicine_id)
        key = AdherenceEngine.ledger_key(
            medicine_id, date_key(day, tz), normalize_time_of_day(time_value, tz)
        )
        record = self._records.get(key)
        if record is None:
            return None
        return bool(record.get(const.DATA_RECORD_TAKEN))

    async def async_set_taken(
        self, medicine_id: str, day: str | date, time_value: Any, taken: bool
    ) -> AdherenceRecord:
        """Record whether a dose was taken, replacing any earlier outcome.

        Raises:
            ValueError: If the medicine id, date or time cannot be normalized.
        """
        record = AdherenceEngine.build_record(
            medicine_id, day, time_value, taken, tz=self._zone_for(medicine_id)
        )
        async with self._lock:
            await self._async_write_unlocked(record)

        self._emit_changed(record)
        return record

    async def async_toggle_taken(
        self, medicine_id: str, day: str | date, time_value: Any
    ) -> AdherenceRecord:
        """Flip the recorded outcome of a dose slot. Unrecorded becomes taken.

        The read and the write happen under the same lock, so two concurrent
        toggles always cancel out.
        """
        slot = AdherenceEngine.build_record(
            medicine_id, day, time_value, True, tz=self._zone_for(medicine_id)
        )
        key = AdherenceEngine.ledger_key(
            slot[const.DATA_RECORD_MEDICINE_ID],
            slot[const.DATA_RECORD_DATE],
            slot[const.DATA_RECORD_TIME],
        )

        async with self._lock:
            current = self._records.get(key)
            taken = not current.get(const.DATA_RECORD_TAKEN) if current else True
            record = AdherenceEngine.build_record(
                slot[const.DATA_RECORD_MEDICINE_ID],
                slot[const.DATA_RECORD_DATE],
                slot[const.DATA_RECORD_TIME],
                taken,
            )
            await self._async_write_unlocked(record)

        self._emit_changed(record)
        return record

    def _zone_for(self, medicine_id: str) -> tzinfo:
        """Return the zone dose slots of a medicine are keyed in."""
        name = self._timezone_for(medicine_id) if self._timezone_for else None
        return get_time_zone(name)

    async def _async_write_unlocked(self, record: AdherenceRecord) -> None:
        """Swap in a snapshot holding `record` and persist it. Caller holds the lock."""
        self._records = AdherenceEngine.with_record(self._records, record)
        try:
            await self._store.async_set(
                const.STORE_KEY_ADHERENCE_HISTORY, self._records
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to persist adherence history: %s", err)

        const.LOGGER.debug(
            "DEBUG: Recorded %s for '%s' on %s at %s",
            "taken" if record[const.DATA_RECORD_TAKEN] else "not taken",
            record[const.DATA_RECORD_MEDICINE_ID],
            record[const.DATA_RECORD_DATE],
            record[const.DATA_RECORD_TIME],
        )

    def _emit_changed(self, record: AdherenceRecord) -> None:
        self.emit(
            const.SIGNAL_SUFFIX_ADHERENCE_CHANGED,
            medicine_id=record[const.DATA_RECORD_MEDICINE_ID],
            date=record[const.DATA_RECORD_DATE],
            time=record[const.DATA_RECORD_TIME],
            taken=record[const.DATA_RECORD_TAKEN],
        )
