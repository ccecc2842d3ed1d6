# solarman_sync/tests/test_continuity.py

from datetime import date

from solarman_sync.models.sync import ContinuousBlock
from solarman_sync.services.continuity import ContinuityTracker


def test_single_run_needs_no_trim():
    tracker = ContinuityTracker()
    tracker.record_data(date(2024, 1, 1), 10)
    tracker.record_data(date(2024, 1, 2), 12)

    block = tracker.finish()

    assert block.start_date == date(2024, 1, 1)
    assert block.day_count == 2
    assert block.row_count == 22
    assert not tracker.needs_trim()


def test_gap_keeps_only_the_latest_block():
    tracker = ContinuityTracker()
    tracker.record_data(date(2024, 1, 1), 5)
    tracker.record_data(date(2024, 1, 2), 5)
    frozen = tracker.record_gap(date(2024, 1, 3))
    tracker.record_data(date(2024, 1, 4), 3)
    tracker.record_data(date(2024, 1, 5), 4)

    assert frozen.start_date == date(2024, 1, 1)
    assert frozen.row_count == 10

    block = tracker.finish()
    assert block.start_date == date(2024, 1, 4)
    assert block.row_count == 7
    assert tracker.total_rows == 17
    assert tracker.needs_trim()


def test_trailing_gap_keeps_last_block_before_it():
    tracker = ContinuityTracker()
    tracker.record_data(date(2024, 1, 1), 5)
    tracker.record_gap(date(2024, 1, 2))
    tracker.record_gap(date(2024, 1, 3))

    block = tracker.finish()

    assert block.start_date == date(2024, 1, 1)
    assert not tracker.needs_trim()


def test_leading_gaps_freeze_nothing():
    tracker = ContinuityTracker()

    assert tracker.record_gap(date(2024, 1, 1)) is None
    assert tracker.finish() is None
    assert not tracker.needs_trim()


def test_seed_continues_existing_file_block():
    seed = ContinuousBlock(start_date=date(2023, 12, 30), day_count=2, row_count=8)
    tracker = ContinuityTracker(seed=seed)
    tracker.record_data(date(2024, 1, 1), 4)

    block = tracker.finish()

    assert block.start_date == date(2023, 12, 30)
    assert block.row_count == 12
    assert not tracker.needs_trim()
    # The seed itself is not mutated.
    assert seed.row_count == 8


def test_gap_right_after_seed_trims_history():
    seed = ContinuousBlock(start_date=date(2023, 12, 30), day_count=2, row_count=8)
    tracker = ContinuityTracker(seed=seed)
    tracker.record_gap(date(2024, 1, 1))
    tracker.record_data(date(2024, 1, 2), 4)

    assert tracker.finish().start_date == date(2024, 1, 2)
    assert tracker.needs_trim()
