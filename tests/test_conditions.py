from datetime import datetime, timezone

from opmarket.conditions import (
    CONDITION_FALSE,
    CONDITION_TRUE,
    OPERATOR_AVAILABLE,
    OPERATOR_FAILING,
    OPERATOR_PROGRESSING,
    StatusCondition,
    condition_lists_equal,
    conditions_equal,
    find_status_condition,
    set_status_condition,
)

T1 = datetime(2020, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2020, 1, 2, tzinfo=timezone.utc)


def test_find_status_condition():
    available = StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE)
    failing = StatusCondition(OPERATOR_FAILING, CONDITION_FALSE)
    assert find_status_condition([available, failing], OPERATOR_FAILING) is failing
    assert find_status_condition([available], OPERATOR_PROGRESSING) is None


def test_set_appends_new_condition():
    conditions = []
    set_status_condition(conditions, StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "up", last_transition_time=T1))
    assert len(conditions) == 1
    assert conditions[0].status == CONDITION_TRUE
    assert conditions[0].message == "up"
    assert conditions[0].last_transition_time == T1


def test_set_appends_with_current_time_when_missing():
    conditions = []
    before = datetime.now(timezone.utc)
    set_status_condition(conditions, StatusCondition(OPERATOR_FAILING, CONDITION_FALSE))
    assert conditions[0].type == OPERATOR_FAILING
    assert conditions[0].last_transition_time >= before


def test_set_keeps_transition_time_when_status_unchanged():
    conditions = [StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "old", last_transition_time=T1)]
    set_status_condition(conditions, StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "new", last_transition_time=T2))
    assert len(conditions) == 1
    assert conditions[0].message == "new"
    assert conditions[0].last_transition_time == T1


def test_set_updates_transition_time_when_status_changes():
    conditions = [StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "old", last_transition_time=T1)]
    set_status_condition(conditions, StatusCondition(OPERATOR_AVAILABLE, CONDITION_FALSE, "down", last_transition_time=T2))
    assert conditions[0].status == CONDITION_FALSE
    assert conditions[0].last_transition_time == T2


def test_conditions_equal_ignores_time_and_reason():
    a = StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "m", reason="x", last_transition_time=T1)
    b = StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "m", reason="y", last_transition_time=T2)
    assert conditions_equal(a, b) is True
    assert conditions_equal(a, StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE, "other")) is False


def test_lists_equal_regardless_of_order():
    a = [StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE), StatusCondition(OPERATOR_FAILING, CONDITION_FALSE)]
    b = [StatusCondition(OPERATOR_FAILING, CONDITION_FALSE), StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE)]
    assert condition_lists_equal(a, b) is True


def test_lists_differ_in_length_or_content():
    a = [StatusCondition(OPERATOR_AVAILABLE, CONDITION_TRUE)]
    assert condition_lists_equal(a, []) is False
    assert condition_lists_equal(a, [StatusCondition(OPERATOR_FAILING, CONDITION_TRUE)]) is False
    assert condition_lists_equal(a, [StatusCondition(OPERATOR_AVAILABLE, CONDITION_FALSE)]) is False