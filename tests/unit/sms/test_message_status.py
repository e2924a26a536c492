import itertools

import pytest

from src.sms.domain.value_objects.message_status import (
    VALID_STATUS_TRANSITIONS,
    MessageStatus as S,
    can_advance,
    is_retryable_failure,
    is_terminal_status,
    is_valid_status_transition,
)


@pytest.mark.parametrize(
    "current,new",
    [
        (S.QUEUED, S.SENDING),
        (S.QUEUED, S.CANCELED),
        (S.SENDING, S.SENT),
        (S.SENDING, S.FAILED),
        (S.SENT, S.DELIVERED),
        (S.SENT, S.UNDELIVERED),
        (S.SENT, S.FAILED),
        (S.FAILED, S.QUEUED),
        (S.UNDELIVERED, S.QUEUED),
    ],
)
def test_direct_transitions(current, new):
    assert is_valid_status_transition(current, new)


def test_terminal_statuses_have_no_exits():
    for status in (S.DELIVERED, S.CANCELED):
        assert is_terminal_status(status)
        assert VALID_STATUS_TRANSITIONS[status] == frozenset()
        assert not any(can_advance(status, other) for other in S)


def test_retryable_failures():
    assert is_retryable_failure(S.FAILED)
    assert is_retryable_failure(S.UNDELIVERED)
    assert not is_retryable_failure(S.DELIVERED)
    assert not is_retryable_failure(S.SENT)


def test_delivered_to_sending_rejected():
    assert not is_valid_status_transition(S.DELIVERED, S.SENDING)
    assert not can_advance(S.DELIVERED, S.SENDING)


def test_forward_jumps_allowed():
    assert can_advance(S.QUEUED, S.DELIVERED)
    assert can_advance(S.SENDING, S.UNDELIVERED)
    assert can_advance(S.QUEUED, S.FAILED)


def test_forward_jumps_do_not_follow_retry_edges():
    assert not can_advance(S.FAILED, S.SENDING)
    assert not can_advance(S.UNDELIVERED, S.DELIVERED)
    assert can_advance(S.FAILED, S.QUEUED)


def test_no_backward_moves():
    assert not can_advance(S.SENT, S.SENDING)
    assert not can_advance(S.SENT, S.QUEUED)
    assert not can_advance(S.SENDING, S.QUEUED)


def test_direct_edges_are_subset_of_can_advance():
    for current, new in itertools.product(S, S):
        if is_valid_status_transition(current, new):
            assert can_advance(current, new)
