import pytest

from chainflow.contracts import BackoffSpec
from chainflow.utils import retry


def test_fixed_backoff_ignores_attempt():
    backoff = BackoffSpec(strategy="fixed", delay_ms=8000)
    assert retry.backoff_delay(backoff, 1) == 8.0
    assert retry.backoff_delay(backoff, 3) == 8.0


def test_exponential_backoff_doubles():
    backoff = BackoffSpec(strategy="exponential", delay_ms=500)
    assert [retry.backoff_delay(backoff, n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


def test_compute_backoff_adds_bounded_jitter():
    delay = retry.compute_backoff(2, base=2, jitter=0.5)
    assert 4 <= delay <= 4.5


@pytest.mark.asyncio
async def test_schedule_retry_sleeps_for_delay(monkeypatch):
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    await retry.schedule_retry(BackoffSpec(strategy="fixed", delay_ms=250), 1)
    assert slept == [0.25]
