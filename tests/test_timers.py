import threading
from datetime import datetime, timedelta

import pytest

from scheduler.timers import ThreadingScheduler


@pytest.fixture
def timers():
    s = ThreadingScheduler()
    yield s
    s.shutdown()


def _soon(ms=50):
    return datetime.now() + timedelta(milliseconds=ms)


def test_jobs_run_in_time_order(timers):
    ran = []
    done = threading.Event()
    timers.schedule(_soon(120), lambda: (ran.append("late"), done.set()))
    timers.schedule(_soon(30), lambda: ran.append("early"))
    assert done.wait(2)
    assert ran == ["early", "late"]


def test_past_instant_runs_immediately(timers):
    done = threading.Event()
    timers.schedule(datetime.now() - timedelta(hours=1), done.set)
    assert done.wait(2)


def test_cancelled_job_never_runs(timers):
    ran = []
    done = threading.Event()
    handle = timers.schedule(_soon(30), lambda: ran.append("cancelled"))
    timers.schedule(_soon(80), done.set)
    handle.cancel()
    assert done.wait(2)
    assert ran == []
    assert timers.pending() == 0


def test_many_jobs_share_one_worker_thread(timers):
    before = threading.active_count()
    handles = [timers.schedule(datetime.now() + timedelta(hours=1, minutes=i), lambda: None) for i in range(200)]
    assert threading.active_count() <= before + 1
    assert timers.pending() == 200
    for h in handles:
        h.cancel()
    assert timers.pending() == 0


def test_failing_job_does_not_stop_the_worker(timers, caplog):
    def boom():
        raise RuntimeError("boom")

    done = threading.Event()
    timers.schedule(_soon(10), boom)
    timers.schedule(_soon(60), done.set)
    assert done.wait(2)
    assert "scheduled job failed" in caplog.text


def test_job_can_schedule_a_follow_up(timers):
    done = threading.Event()
    timers.schedule(_soon(10), lambda: timers.schedule(_soon(10), done.set))
    assert done.wait(2)
