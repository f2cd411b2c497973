import sys
import threading
import time
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, calling, greater_than_or_equal_to, is_, raises

from driverstation.support.timers import PeriodicTimer


def debug_timeout(value):
    """
    Replaces the timeout value with a very large one if the tests are running under a debugger,
    so a breakpoint in a background thread does not fail the test.
    """
    return value if sys.gettrace() is None else 100000


class PeriodicTimerTest(unittest.TestCase):

    def test_period_must_be_positive(self):
        assert_that(calling(PeriodicTimer).with_args(0, Mock()), raises(ValueError))

    def test_not_running_until_started(self):
        sut = PeriodicTimer(1, Mock())
        assert_that(sut.running, is_(False))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_calls_function_repeatedly(self):
        ticks = threading.Semaphore(0)
        sut = PeriodicTimer(0.001, ticks.release, name="test")
        sut.start()
        assert_that(sut.running, is_(True))
        for _ in range(3):
            ticks.acquire()
        sut.stop()
        assert_that(sut.running, is_(False))
        assert_that(sut.background_thread.is_alive(), is_(False))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_exception_is_logged_and_timer_continues(self):
        logged = threading.Semaphore(0)
        log = Mock()
        log.exception.side_effect = lambda e: logged.release()
        sut = PeriodicTimer(0.001, Mock(side_effect=IOError("boom")), log=log)
        sut.start()
        logged.acquire()
        logged.acquire()
        sut.stop()
        assert_that(sut.fn.call_count, is_(greater_than_or_equal_to(2)))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_slow_calls_keep_the_rate(self):
        calls = []
        sut = PeriodicTimer(0.05, lambda: (calls.append(1), time.sleep(0.025)))
        sut.start()
        time.sleep(1.0)
        sut.stop()
        # 20 calls at the nominal rate, 13 if the call time were added to each period
        assert_that(len(calls), is_(greater_than_or_equal_to(17)))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_overrun_does_not_burst(self):
        calls = []
        sut = PeriodicTimer(0.01, lambda: (calls.append(time.monotonic()), time.sleep(0.05)))
        sut.start()
        time.sleep(0.3)
        sut.stop()
        gaps = [b - a for a, b in zip(calls, calls[1:])]
        assert_that(min(gaps), is_(greater_than_or_equal_to(0.045)))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_stop_from_own_thread_does_not_join(self):
        done = threading.Event()
        holder = []

        def tick():
            holder[0].stop()
            done.set()

        sut = PeriodicTimer(0.001, tick)
        holder.append(sut)
        sut.start()
        done.wait()
        sut.background_thread.join()
        assert_that(sut.running, is_(False))

    def test_cannot_restart(self):
        sut = PeriodicTimer(1, Mock())
        sut.stop()
        assert_that(calling(sut.start), raises(RuntimeError))

    def test_stop_before_start(self):
        sut = PeriodicTimer(1, Mock())
        sut.stop()
        assert_that(sut.running, is_(False))
