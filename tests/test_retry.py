import pytest

from services.errors import AIConfigurationError, GeminiAPIError
from services.retry import backoff_delay_ms, is_retryable_error, retry, retry_call


class Flaky:
    """Fails with the given errors in order, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return 'ok'


@pytest.mark.parametrize('status_code', [429, 500, 503])
def test_transient_statuses_are_retryable(status_code):
    assert is_retryable_error(GeminiAPIError(status_code, 'busy'))


@pytest.mark.parametrize('error', [
    GeminiAPIError(400, 'bad request'),
    GeminiAPIError(401, 'bad key'),
    GeminiAPIError(403, 'forbidden'),
    GeminiAPIError(None, 'network down'),
    AIConfigurationError(),
    ValueError('boom'),
])
def test_other_errors_are_not_retryable(error):
    assert not is_retryable_error(error)


def test_backoff_doubles():
    assert [backoff_delay_ms(n, 1000) for n in (1, 2, 3)] == [1000, 2000, 4000]


def test_always_retryable_error_exhausts_attempts():
    sleeps = []
    operation = Flaky(*[GeminiAPIError(503, 'overloaded')] * 5)

    with pytest.raises(GeminiAPIError) as excinfo:
        retry_call(operation, max_attempts=3, base_delay_ms=1000, sleep=sleeps.append)

    assert excinfo.value.status_code == 503
    assert operation.calls == 3
    assert sleeps == [1.0, 2.0]
    assert all(a < b for a, b in zip(sleeps, sleeps[1:]))


def test_non_retryable_error_propagates_after_one_call():
    sleeps = []
    operation = Flaky(GeminiAPIError(401, 'API key not valid'))

    with pytest.raises(GeminiAPIError):
        retry_call(operation, max_attempts=3, sleep=sleeps.append)

    assert operation.calls == 1
    assert sleeps == []


def test_recovers_after_transient_failure():
    sleeps = []
    operation = Flaky(GeminiAPIError(429, 'slow down'))

    assert retry_call(operation, max_attempts=3, base_delay_ms=10, sleep=sleeps.append) == 'ok'
    assert operation.calls == 2
    assert sleeps == [0.01]


def test_single_attempt_never_sleeps():
    sleeps = []
    operation = Flaky(GeminiAPIError(500, 'internal'))

    with pytest.raises(GeminiAPIError):
        retry_call(operation, max_attempts=1, sleep=sleeps.append)

    assert operation.calls == 1
    assert sleeps == []


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        retry_call(lambda: 'ok', max_attempts=0)


def test_decorator_form():
    sleeps = []
    attempts = []

    @retry(max_attempts=4, base_delay_ms=5, sleep=sleeps.append)
    def call_model(prompt):
        attempts.append(prompt)
        if len(attempts) < 3:
            raise GeminiAPIError(503, 'unavailable')
        return prompt.upper()

    assert call_model('hello') == 'HELLO'
    assert attempts == ['hello'] * 3
    assert sleeps == [0.005, 0.01]
