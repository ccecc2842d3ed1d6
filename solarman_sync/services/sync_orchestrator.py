# solarman_sync/services/sync_orchestrator.py

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from solarman_sync.config import AppConfig, StationConfig, SyncConfig
from solarman_sync.errors import (
    AuthFailed,
    ConnectivityLost,
    ConsecutiveFailureLimit,
    NoDataInRange,
    SyncCancelled,
    SyncError,
    TargetWindowUnavailable,
)
from solarman_sync.models.sync import ContinuousBlock, FetchWindow, SyncMetadata, SyncResult
from solarman_sync.models.telemetry import DayData, DayFailed, DayOutcome, DayRecord, GapDay, Unauthorized
from solarman_sync.services.connectivity import ConnectivityWaiter, default_probe_for
from solarman_sync.services.continuity import ContinuityTracker
from solarman_sync.services.credential_cache import CredentialCache
from solarman_sync.services.csv_writer import CsvStats, CsvSyncWriter
from solarman_sync.services.day_fetcher import DayFetcher
from solarman_sync.services.fingerprint import config_fingerprint
from solarman_sync.services.metadata_store import MetadataStore
from solarman_sync.services.schema_accumulator import SchemaAccumulator
from solarman_sync.services.solarman_client import SolarmanAPIClient
from solarman_sync.services.weather_window import read_target_window

ONE_DAY = timedelta(days=1)


class Phase(str, Enum):
    IDLE = "idle"
    COMPUTE_WINDOW = "compute_window"
    COMPLETE = "complete"
    FETCHING = "fetching"
    FINALIZING = "finalizing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncState:
    """Everything the day loop mutates, in one place."""

    phase: Phase = Phase.IDLE
    config_hash: str = ""
    config_changed: bool = False
    config_last_changed_at: Optional[datetime] = None
    target: Optional[FetchWindow] = None
    window: Optional[FetchWindow] = None
    append: bool = False
    seed: Optional[ContinuousBlock] = None
    current_day: Optional[date] = None
    day_index: int = 0
    consecutive_failures: int = 0
    rows_fetched: int = 0
    fetch_started: bool = False
    persisted: bool = False
    final_block: Optional[ContinuousBlock] = None
    error: Optional[SyncError] = None

    @property
    def mode(self) -> str:
        if self.phase is Phase.COMPLETE:
            return "up_to_date"
        if self.config_changed:
            return "full"
        return "append" if self.append else "fresh"


class SyncOrchestrator:
    """
    Keeps the local station CSV in sync with the weather window.

    One call to ``run`` computes the window still missing, fetches it day by
    day, keeps only the last contiguous block of days and records metadata
    for the next run. Recoverable per-day conditions arrive as outcome values
    from ``DayFetcher``; fatal ones are raised as ``SyncError`` subclasses
    after whatever was already written has been made durable.
    """

    def __init__(
        self,
        *,
        station: StationConfig,
        sync_cfg: SyncConfig,
        credentials: CredentialCache,
        fetcher: DayFetcher,
        waiter: ConnectivityWaiter,
        writer: CsvSyncWriter,
        metadata: MetadataStore,
        weather_path: Path,
        log,
        progress=None,
        config_changed_at: Optional[datetime] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.station = station
        self.sync_cfg = sync_cfg
        self.credentials = credentials
        self.fetcher = fetcher
        self.waiter = waiter
        self.writer = writer
        self.metadata = metadata
        self.weather_path = Path(weather_path)
        self.log = log
        self.progress = progress
        self.config_changed_at = config_changed_at
        self.clock = clock or datetime.now
        self._sleep = sleep or time.sleep
        self.cancel_event = cancel_event
        self.state = SyncState()
        self._schema: Optional[SchemaAccumulator] = None
        self._tracker: Optional[ContinuityTracker] = None

    # ------------------------------------------------------------------
    @classmethod
    def from_config(
        cls,
        app_cfg: AppConfig,
        log,
        *,
        session=None,
        progress=None,
        cancel_event: Optional[threading.Event] = None,
        probe: Optional[Callable[[], bool]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> "SyncOrchestrator":
        sync_cfg = app_cfg.sync
        conn_cfg = app_cfg.connectivity

        client = SolarmanAPIClient(app_cfg.solarman, log, session=session)
        waiter = ConnectivityWaiter(
            probe or default_probe_for(conn_cfg, client.base_url),
            log,
            max_wait=conn_cfg.max_wait,
            poll_interval=conn_cfg.poll_interval,
            cancel_event=cancel_event,
            sleep=sleep,
        )
        credentials = CredentialCache(
            client,
            log,
            guard_band=timedelta(minutes=sync_cfg.token_guard_minutes),
            clock=clock,
            progress=progress,
        )
        fetcher = DayFetcher(
            client,
            waiter,
            log,
            max_retries=sync_cfg.max_retries,
            retry_delay=sync_cfg.retry_delay,
            progress=progress,
            sleep=sleep,
        )

        changed_at = None
        if app_cfg.source_path is not None and app_cfg.source_path.exists():
            changed_at = datetime.fromtimestamp(app_cfg.source_path.stat().st_mtime)

        return cls(
            station=app_cfg.station,
            sync_cfg=sync_cfg,
            credentials=credentials,
            fetcher=fetcher,
            waiter=waiter,
            writer=CsvSyncWriter(sync_cfg.output_path, log),
            metadata=MetadataStore(sync_cfg.metadata_path, log),
            weather_path=sync_cfg.weather_path,
            log=log,
            progress=progress,
            config_changed_at=changed_at,
            clock=clock,
            sleep=sleep,
            cancel_event=cancel_event,
        )

    # ------------------------------------------------------------------
    def _notify(self, message: str, kind: str = "info") -> None:
        if self.progress is not None:
            self.progress.publish(message, kind=kind)
        else:
            self.log.info(message)

    def _check_cancelled(self, day: Optional[date]) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise SyncCancelled("Sync cancelled", last_date=day)

    # ------------------------------------------------------------------
    def run(self) -> SyncResult:
        state = self.state = SyncState()
        try:
            self._compute_window(state)
            if state.phase is Phase.COMPLETE:
                return self._up_to_date(state)
            self._fetch(state)
            return self._finalize(state)
        except SyncError as exc:
            if exc.last_date is None:
                exc.last_date = state.current_day
            state.error = exc
            self._salvage(state)
            state.phase = Phase.FAILED
            self.log.error("Sync failed: %s", exc.message)
            raise
        except Exception:
            self._salvage(state)
            state.phase = Phase.FAILED
            raise

    # ------------------------------------------------------------------
    # COMPUTE_WINDOW
    # ------------------------------------------------------------------
    def _compute_window(self, state: SyncState) -> None:
        state.phase = Phase.COMPUTE_WINDOW
        state.config_hash = config_fingerprint(self.station)

        previous = self.metadata.load()
        state.config_changed = previous is None or previous.config_hash != state.config_hash
        if state.config_changed:
            state.config_last_changed_at = self.config_changed_at or self.clock()
            self._notify("Configuration changed, fetching all data...")
        else:
            state.config_last_changed_at = previous.config_last_changed_at
            self._notify("Configuration unchanged, checking for missing dates...")

        if not self.weather_path.exists():
            raise TargetWindowUnavailable("Weather CSV file not found. Please fetch weather data first.")
        target = read_target_window(self.weather_path, self.log)
        if target is None:
            raise TargetWindowUnavailable("Could not determine date range from weather CSV")
        state.target = target

        start = target.start
        if state.config_changed:
            self.writer.delete()
        else:
            torn = self.writer.drop_torn_tail()
            if torn:
                self.log.warning("Dropped %d bytes of an interrupted row from %s", torn, self.writer.path)
            coverage = self.writer.read_existing_coverage()
            if coverage is not None and coverage[0] < target.start:
                self._notify("Trimming CSV to match weather date range...", kind="trim")
                self.writer.trim_to_date(target.start)
                coverage = self.writer.read_existing_coverage()

            if coverage is not None:
                existing_start, existing_end = coverage
                if existing_end >= target.end:
                    state.phase = Phase.COMPLETE
                    self._notify("All data already exists, no fetch needed", kind="done")
                    return
                existing = self.writer.scan()
                state.append = True
                state.seed = ContinuousBlock(
                    start_date=existing_start,
                    day_count=(existing_end - existing_start).days + 1,
                    row_count=existing.row_count,
                )
                start = existing_end + ONE_DAY
                self._notify(f"Resuming from {start.isoformat()}")

        state.window = FetchWindow(start=start, end=target.end)

    def _up_to_date(self, state: SyncState) -> SyncResult:
        stats = self.writer.scan()
        return SyncResult(
            file_path=str(self.writer.path.resolve()),
            row_count=stats.row_count,
            first_timestamp=stats.first_timestamp,
            last_timestamp=stats.last_timestamp,
            rows_fetched=0,
            status="up_to_date",
        )

    # ------------------------------------------------------------------
    # FETCHING
    # ------------------------------------------------------------------
    def _token(self, day: date) -> str:
        reachable_failures = 0
        while True:
            try:
                return self.credentials.get_token().token
            except ConnectivityLost as exc:
                self.log.warning("Authentication lost the network: %s", exc.message)
                self._notify("Waiting for network connection...", kind="network")
                if not self.waiter.wait_for_connectivity():
                    reachable_failures += 1
                    if reachable_failures >= self.sync_cfg.max_retries:
                        raise
                    self._sleep(self.sync_cfg.retry_delay)
                self._notify(f"Network connection restored, retrying {day.isoformat()}", kind="network")

    def _fetch_with_reauth(self, day: date) -> DayOutcome:
        time_type = self.sync_cfg.time_type
        outcome = self.fetcher.fetch_day(self._token(day), day, time_type)
        if isinstance(outcome, Unauthorized):
            self._notify("Access token rejected, re-authenticating...", kind="auth")
            self.credentials.clear()
            outcome = self.fetcher.fetch_day(self._token(day), day, time_type)
            if isinstance(outcome, Unauthorized):
                raise AuthFailed(
                    f"Access token rejected after re-authentication: {outcome.message}",
                    status=401,
                    last_date=day,
                )
        return outcome

    def _fetch(self, state: SyncState) -> None:
        window = state.window
        if window is None or window.is_empty:
            return

        state.phase = Phase.FETCHING
        self.writer.begin(append=state.append)
        self._schema = SchemaAccumulator(
            self.sync_cfg.key_collection_days,
            existing_columns=self.writer.columns if self.writer.header_written else None,
        )
        self._tracker = ContinuityTracker(seed=state.seed)
        state.fetch_started = True

        self._notify(f"Date range: {window.start.isoformat()} to {window.end.isoformat()}")

        for day in window.days():
            self._check_cancelled(day)
            state.current_day = day
            state.day_index += 1

            outcome = self._fetch_with_reauth(day)
            if isinstance(outcome, DayData):
                state.consecutive_failures = 0
                self._on_data(state, day, outcome.records)
            elif isinstance(outcome, GapDay):
                state.consecutive_failures = 0
                self._on_break(state, day, failed=False)
            elif isinstance(outcome, DayFailed):
                if not outcome.connectivity:
                    state.consecutive_failures += 1
                self._notify(
                    f"Day {state.day_index}: {day.isoformat()} - failed "
                    f"({state.consecutive_failures} consecutive fails): {outcome.message}",
                    kind="retry",
                )
                self._on_break(state, day, failed=True)
                limit = self.sync_cfg.max_consecutive_failures
                if state.consecutive_failures >= limit:
                    raise ConsecutiveFailureLimit(
                        f"Stopping: {limit} consecutive failed days (last = {day.isoformat()})",
                        last_date=day,
                    ) from outcome.error

            if day < window.end:
                self._sleep(self.sync_cfg.request_delay)

    def _commit_header(self, suffix: str = "") -> None:
        columns, pending = self._schema.commit()
        self.writer.write_header(columns)
        self.writer.write_records(pending)
        self.writer.flush()
        self._notify(f"Header written with {len(columns)} columns{suffix}")

    def _on_data(self, state: SyncState, day: date, records: List[DayRecord]) -> None:
        schema = self._schema
        new_keys = schema.observe(records)
        self._tracker.record_data(day, len(records))
        state.rows_fetched += len(records)

        if schema.collecting:
            schema.buffer(records)
            if new_keys:
                self._notify(
                    f"Day {state.day_index}: {day.isoformat()} - collecting keys "
                    f"({len(schema.columns)} keys so far)..."
                )
            if schema.should_commit_header():
                self._commit_header(f" (from {schema.days_observed} days)")
            return

        if new_keys:
            self.writer.extend_columns(schema.columns)
            self._notify(f"Added {len(new_keys)} new columns: {', '.join(new_keys)}")
        self.writer.write_records(records)
        self.writer.flush()
        self._notify(
            f"Day {state.day_index}: {day.isoformat()} - {len(records)} records (total: {state.rows_fetched})",
            kind="day",
        )

    def _on_break(self, state: SyncState, day: date, *, failed: bool) -> None:
        if self._schema.should_commit_header(gap=True):
            self._commit_header(" before gap")

        frozen = self._tracker.record_gap(day)
        if frozen is not None:
            reason = "Failed day" if failed else "Gap detected"
            self._notify(f"{reason} at {day.isoformat()} - saving current block", kind="gap")
        elif not failed:
            self._notify(f"Skipping empty day: {day.isoformat()}", kind="gap")

    # ------------------------------------------------------------------
    # FINALIZING
    # ------------------------------------------------------------------
    def _persist_progress(self, state: SyncState) -> CsvStats:
        """Make everything fetched so far durable: header, trim, metadata."""
        if self._schema is not None and self._schema.should_commit_header(gap=True):
            self._commit_header()
        self.writer.close()

        if self._tracker is not None:
            state.final_block = self._tracker.finish()
            if self._tracker.needs_trim():
                start = state.final_block.start_date
                self._notify(f"Trimming file to last continuous block starting from {start.isoformat()}", kind="trim")
                self.writer.trim_to_date(start)

        stats = self.writer.scan()
        if stats.row_count > 0:
            self.metadata.save(
                SyncMetadata(
                    config_hash=state.config_hash,
                    config_last_changed_at=state.config_last_changed_at or self.clock(),
                    last_fetch_at=self.clock(),
                )
            )
        state.persisted = True
        return stats

    def _salvage(self, state: SyncState) -> None:
        if not state.fetch_started or state.persisted:
            return
        try:
            stats = self._persist_progress(state)
            self.log.info("Kept %d rows written before the failure", stats.row_count)
        except OSError as exc:
            self.log.error("Could not persist partial progress: %s", exc)

    def _finalize(self, state: SyncState) -> SyncResult:
        state.phase = Phase.FINALIZING
        stats = self._persist_progress(state)
        self._notify(f"Final continuous block kept with {stats.row_count} records")

        if stats.row_count == 0:
            last = state.window.end if state.window is not None else None
            raise NoDataInRange("No data returned for the specified date range", last_date=last)

        state.phase = Phase.SUCCESS
        self._notify("Data saved successfully", kind="done")
        return SyncResult(
            file_path=str(self.writer.path.resolve()),
            row_count=stats.row_count,
            first_timestamp=stats.first_timestamp,
            last_timestamp=stats.last_timestamp,
            rows_fetched=state.rows_fetched,
            status="synced",
        )
