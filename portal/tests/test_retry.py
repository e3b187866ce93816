import pytest

from portal.services.retry import RetryExhausted, RetryPolicy
from portal.services.saga import Saga


def test_no_sleep_after_last_attempt():
    sleeps = []
    calls = []

    def failing():
        calls.append(1)
        raise ValueError('nope')

    with pytest.raises(RetryExhausted) as excinfo:
        RetryPolicy(attempts=3, delay=2, sleep=sleeps.append).call(failing, operation='insert')

    assert len(calls) == 3
    assert sleeps == [2, 2]
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.last_error, ValueError)


def test_rejected_results_are_retried():
    values = iter([None, None, {'role': 'admin'}])
    result = RetryPolicy(attempts=5, delay=0, sleep=lambda s: None).call(
        lambda: next(values), operation='lookup', accept=lambda v: v is not None)
    assert result == {'role': 'admin'}


def test_first_success_returns_immediately():
    sleeps = []
    assert RetryPolicy(attempts=3, delay=1, sleep=sleeps.append).call(lambda: 42, operation='x') == 42
    assert sleeps == []


def test_saga_compensates_in_reverse_order():
    undone = []
    saga = Saga('demo', undo_policy=RetryPolicy(attempts=1, delay=0, sleep=lambda s: None))
    saga.on_undo('first', lambda: undone.append('first'))
    saga.on_undo('second', lambda: undone.append('second'))

    assert saga.compensate() == []
    assert undone == ['second', 'first']


def test_saga_reports_failed_undo_steps_with_context():
    def boom():
        raise RuntimeError('still there')

    saga = Saga('demo', undo_policy=RetryPolicy(attempts=2, delay=0, sleep=lambda s: None))
    saga.on_undo('delete_principal', boom, principal_id=7)

    failures = saga.compensate()

    assert len(failures) == 1
    assert failures[0].step == 'delete_principal'
    assert failures[0].context == {'principal_id': 7}
    assert isinstance(failures[0].error, RuntimeError)


def test_committed_saga_does_nothing():
    undone = []
    saga = Saga('demo', undo_policy=RetryPolicy(attempts=1, delay=0, sleep=lambda s: None))
    saga.on_undo('first', lambda: undone.append('first'))
    saga.commit()
    assert saga.compensate() == []
    assert undone == []
