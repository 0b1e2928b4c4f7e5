"""Per-user health record store — ordered history plus derived chart series.

The store owns a user's full record sequence. Records are kept ordered by
``(date, insertion order)``; same-day records stay in the order they were
appended and are never re-sorted by value. Every append re-encodes the full
sequence and saves it through the persistence port.
"""

from __future__ import annotations

import bisect
import logging
import threading

from hridaymitra.core.storage.models import (
    BloodPressurePoint,
    HealthRecord,
    RecordDecodeError,
    SeriesPoint,
    VitalKind,
    decode_records,
    encode_records,
    record_key,
    unreadable_key,
)
from hridaymitra.core.storage.persistence import PersistencePort, PersistenceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 7

# Single-valued vitals -> HealthRecord attribute
_VITAL_FIELDS = {
    VitalKind.HEART_RATE: "heart_rate",
    VitalKind.BLOOD_SUGAR: "blood_sugar",
    VitalKind.WEIGHT: "weight",
}


class HealthRecordStore:
    """Sole writer of one user's health record history.

    Construction loads the stored sequence. A missing sequence starts empty;
    an unreadable or unreachable one also starts empty, with the problem
    recorded in :attr:`warnings` instead of raised. The first save then
    retries the load and merges what it finds, or sets an undecodable
    payload aside, so a degraded start never erases stored history.

    Usage::

        store = HealthRecordStore("user-1", SQLitePersistence(db))
        store.append(HealthRecord(date=date(2026, 3, 1), user_id="user-1", heart_rate=72))
        store.latest()
        store.recent_series(VitalKind.HEART_RATE, window_size=7)
    """

    def __init__(self, user_id: str, persistence: PersistencePort) -> None:
        if not user_id:
            raise ValueError("user_id must not be empty")
        self._user_id = user_id
        self._port = persistence
        self._key = record_key(user_id)
        self._lock = threading.Lock()
        self._records: list[HealthRecord] = []
        self._durable = True
        self._needs_reload = False
        self._unreadable: bytes | None = None
        self.warnings: list[str] = []
        self._load()

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def is_durable(self) -> bool:
        """False while the in-memory sequence has changes the port has not confirmed."""
        return self._durable

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Loading / saving
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            payload = self._port.load(self._key)
        except PersistenceUnavailable as exc:
            self._needs_reload = True
            self._warn(f"Could not load health records, starting empty: {exc}")
            return

        if payload is None:
            logger.info("No stored health records for %s; starting empty", self._key)
            return
        self._records = self._decode(payload)
        logger.info("Loaded %d health records for %s", len(self._records), self._key)

    def _decode(self, payload: bytes | None) -> list[HealthRecord]:
        if payload is None:
            return []
        try:
            records = decode_records(self._user_id, payload)
        except RecordDecodeError as exc:
            self._unreadable = payload
            self._warn(f"Stored health records unreadable, starting empty: {exc}")
            return []
        # Stable sort: stored order is the insertion order for same-day records
        return sorted(records, key=lambda r: r.date)

    def _warn(self, message: str) -> None:
        logger.warning("%s (%s)", message, self._key)
        self.warnings.append(message)

    def _reconcile_locked(self) -> None:
        """Make sure a save cannot overwrite stored history the load never saw.

        A failed load is retried and the stored records are merged ahead of
        this session's records. An undecodable payload is copied aside first.

        Raises:
            PersistenceUnavailable: If the stored sequence still cannot be read.
        """
        if self._needs_reload:
            payload = self._port.load(self._key)
            self._needs_reload = False
            stored = self._decode(payload)
            self._records = sorted(stored + self._records, key=lambda r: r.date)
            logger.info("Recovered %d stored health records for %s", len(stored), self._key)

        if self._unreadable is not None:
            self._port.save(unreadable_key(self._user_id), self._unreadable)
            self._unreadable = None
            logger.warning("Unreadable health records set aside for %s", self._key)

    def _save_locked(self) -> None:
        self._durable = False
        self._reconcile_locked()
        self._port.save(self._key, encode_records(self._user_id, self._records))
        self._durable = True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, record: HealthRecord) -> None:
        """Add a record and persist the full updated sequence.

        Same-day records are valid and kept in arrival order. The record
        stays in memory even if the save fails, so :meth:`flush` can retry
        without the user re-entering data.

        Args:
            record: A record belonging to this store's user.

        Raises:
            ValueError: If the record belongs to another user.
            PersistenceUnavailable: If the save failed. The record is not
                durable until a later :meth:`flush` succeeds.
        """
        if record.user_id != self._user_id:
            raise ValueError(
                f"Record for user {record.user_id!r} cannot be stored for {self._user_id!r}"
            )

        with self._lock:
            # After every record on the same date or earlier
            index = bisect.bisect_right(self._records, record.date, key=lambda r: r.date)
            self._records.insert(index, record)
            try:
                self._save_locked()
            except PersistenceUnavailable:
                logger.warning(
                    "Health record kept in memory but not persisted (%s, %d pending)",
                    self._key,
                    len(self._records),
                )
                raise
        logger.info("Appended health record for %s dated %s", self._key, record.date.isoformat())

    def flush(self) -> None:
        """Persist the sequence if an earlier save did not complete.

        Raises:
            PersistenceUnavailable: If the save fails again.
        """
        with self._lock:
            if self._durable:
                return
            self._save_locked()
        logger.info("Flushed pending health records for %s", self._key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def latest(self) -> HealthRecord | None:
        """Return the record with the greatest (date, insertion) key, or None."""
        return self._records[-1] if self._records else None

    def all(self) -> list[HealthRecord]:
        """Return a snapshot of every record, oldest first.

        The list is a copy; changing it does not affect the store.
        """
        with self._lock:
            return list(self._records)

    def recent_series(
        self,
        vital: VitalKind | str,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> list[SeriesPoint] | list[BloodPressurePoint]:
        """Most recent ``window_size`` values of a vital, oldest first.

        Only records that define the vital count. Blood pressure requires
        both systolic and diastolic. Fewer qualifying records yield a shorter
        series, without padding or interpolation. Computed fresh on every call.

        Args:
            vital: Which vital to chart.
            window_size: Maximum number of points.

        Returns:
            ``SeriesPoint`` entries, or ``BloodPressurePoint`` entries for
            blood pressure, in ascending chronological order.

        Raises:
            ValueError: If ``vital`` is unknown or ``window_size < 1``.
        """
        vital = VitalKind(vital)
        if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size < 1:
            raise ValueError(f"window_size must be a positive integer, got {window_size!r}")

        with self._lock:
            records = list(self._records)

        if vital is VitalKind.BLOOD_PRESSURE:
            qualifying = [
                r for r in records
                if r.blood_pressure_systolic is not None and r.blood_pressure_diastolic is not None
            ]
            return [
                BloodPressurePoint(
                    date=r.date,
                    systolic=r.blood_pressure_systolic,
                    diastolic=r.blood_pressure_diastolic,
                )
                for r in qualifying[-window_size:]
            ]

        field_name = _VITAL_FIELDS[vital]
        qualifying = [r for r in records if getattr(r, field_name) is not None]
        return [
            SeriesPoint(date=r.date, value=getattr(r, field_name))
            for r in qualifying[-window_size:]
        ]
