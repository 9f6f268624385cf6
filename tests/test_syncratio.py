import threading

import pytest

from opmarket.syncratio import SyncRatio


@pytest.mark.parametrize(
    "args, fragment",
    [
        ((1.5, 10, 10), "success_ratio"),
        ((-0.1, 10, 10), "success_ratio"),
        ((0.3, 0, 10), "syncs_before_truncate"),
        ((0.3, 10, 0), "sync_truncate_value"),
    ],
)
def test_invalid_parameters_raise(args, fragment):
    with pytest.raises(ValueError, match=fragment):
        SyncRatio(*args)


def test_all_problems_reported_together():
    with pytest.raises(ValueError) as info:
        SyncRatio(2, -1, -1)
    text = str(info.value)
    assert "success_ratio" in text
    assert "syncs_before_truncate" in text
    assert "sync_truncate_value" in text


def test_counts_are_tracked():
    ratio = SyncRatio(0.3, 10000, 100)
    for _ in range(3):
        ratio.report_sync_event()
    ratio.report_failed_sync()
    assert ratio.get_syncs() == (1, 3)


def test_no_events_gives_no_ratio():
    ratio = SyncRatio(0.3, 10000, 100)
    ratio.report_failed_sync()
    assert ratio.is_succeeding() == (False, None)


def test_succeeding_when_ratio_meets_threshold():
    ratio = SyncRatio(0.5, 10000, 100)
    for _ in range(4):
        ratio.report_sync_event()
    ratio.report_failed_sync()
    succeeding, value = ratio.is_succeeding()
    assert succeeding is True
    assert value == pytest.approx(0.75)


def test_failing_when_ratio_below_threshold():
    ratio = SyncRatio(0.9, 10000, 100)
    for _ in range(2):
        ratio.report_sync_event()
        ratio.report_failed_sync()
    succeeding, value = ratio.is_succeeding()
    assert succeeding is False
    assert value < 0.9


def test_threshold_is_inclusive():
    ratio = SyncRatio(1.0, 10000, 100)
    ratio.report_sync_event()
    succeeding, value = ratio.is_succeeding()
    assert succeeding is True
    assert value == 1.0


def test_truncation_after_limit():
    ratio = SyncRatio(0.3, 10, 3)
    for _ in range(11):
        ratio.report_sync_event()
    for _ in range(5):
        ratio.report_failed_sync()
    assert ratio.is_succeeding() == (False, None)
    failed, events = ratio.get_syncs()
    assert events == 0
    assert failed < 3


def test_concurrent_reports_are_all_counted():
    ratio = SyncRatio(0.3, 100000, 100)

    def work():
        for _ in range(500):
            ratio.report_sync_event()
            ratio.report_failed_sync()

    threads = [threading.Thread(target=work) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    failed, events = ratio.get_syncs()
    assert failed == events
    assert events == 4 * 500