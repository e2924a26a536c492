import itertools

from src.sms.domain.value_objects.delivery_status import (
    MESSAGE_TO_DELIVERY_STATUS,
    DeliveryStatus as D,
    calculate_success_rate,
    can_retry_delivery,
    get_valid_delivery_transitions,
    is_failed_delivery,
    is_successful_delivery,
    is_terminal_delivery_status,
    is_valid_delivery_transition,
    map_message_to_delivery_status,
)
from src.sms.domain.value_objects.message_status import MessageStatus as S, is_valid_status_transition


def test_mapping_is_total():
    assert set(MESSAGE_TO_DELIVERY_STATUS) == set(S)


def test_mapping_values():
    assert map_message_to_delivery_status(S.QUEUED) is D.PENDING
    assert map_message_to_delivery_status(S.SENDING) is D.PENDING
    assert map_message_to_delivery_status(S.SENT) is D.SENT
    assert map_message_to_delivery_status(S.DELIVERED) is D.DELIVERED
    assert map_message_to_delivery_status(S.FAILED) is D.FAILED
    assert map_message_to_delivery_status(S.UNDELIVERED) is D.FAILED
    assert map_message_to_delivery_status(S.CANCELED) is D.FAILED


def test_mapped_message_transitions_are_valid_delivery_moves():
    for current, new in itertools.product(S, S):
        if not is_valid_status_transition(current, new):
            continue
        before = map_message_to_delivery_status(current)
        after = map_message_to_delivery_status(new)
        assert before == after or is_valid_delivery_transition(before, after), (current, new)


def test_can_retry():
    assert can_retry_delivery(D.FAILED, 2, 3) is True
    assert can_retry_delivery(D.FAILED, 3, 3) is False
    assert can_retry_delivery(D.UNDELIVERED, 0) is True
    assert can_retry_delivery(D.DELIVERED, 0) is False
    assert can_retry_delivery(D.SENT, 0) is False


def test_terminal_and_classification():
    for status in (D.DELIVERED, D.FAILED, D.CANCELED, D.UNDELIVERED, D.RECEIVED):
        assert is_terminal_delivery_status(status)
    assert not is_terminal_delivery_status(D.SENT)
    assert is_successful_delivery(D.RECEIVED)
    assert is_failed_delivery(D.CANCELED)
    assert not is_failed_delivery(D.DELIVERED)


def test_success_rate():
    assert calculate_success_rate([]) == 0.0
    assert calculate_success_rate([D.DELIVERED, D.RECEIVED, D.FAILED, D.SENT]) == 50.0


def test_delivery_transition_table():
    for status in (D.DELIVERED, D.CANCELED, D.RECEIVED):
        assert get_valid_delivery_transitions(status) == frozenset()
    assert get_valid_delivery_transitions(D.UNDELIVERED) == {D.QUEUED, D.PENDING}
