"""
Periodic work on background threads.

A PeriodicTimer calls a function at a fixed rate until it is stopped. Each timer owns
one daemon thread; a stopped timer cannot be started again, so callers create a new
timer each time a rate becomes active.
"""
import logging
import threading
import time

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """ Calls a function every `period` seconds on a background thread.

        The first call happens one period after start(). Calls are scheduled against fixed
        deadlines, so the time a call takes does not lower the rate. Exceptions raised by
        the function are logged and the timer keeps running.
    """

    def __init__(self, period: float, fn, name=None, log=logger):
        """
        :param period   the interval between calls, in seconds
        :param fn       the callable to run each period. Called with no arguments.
        :param name     used to name the background thread
        """
        if period <= 0:
            raise ValueError("timer period must be positive, got %s" % period)
        self.period = period
        self.fn = fn
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log

    def start(self):
        if self.stop_event.is_set():
            raise RuntimeError("timer %s has been stopped and cannot be restarted" % self.name)
        if self.background_thread is None:
            t = threading.Thread(target=self._run, name=self.name, daemon=True)
            self.background_thread = t
            t.start()

    @property
    def running(self) -> bool:
        return self.background_thread is not None and not self.stop_event.is_set()

    def _run(self):
        deadline = time.monotonic() + self.period
        while not self.stop_event.wait(max(0.0, deadline - time.monotonic())):
            self._do(self.fn)
            # an overrun call is not followed by a burst of catch-up calls
            deadline = max(deadline + self.period, time.monotonic())
        self.logger.debug("timer %s exiting", self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            callme()
        except Exception as e:
            self.exception_handler(e)

    def exception_handler(self, e):
        self.logger.exception(e)

    def stop(self, wait=True):
        """
        Stops the timer. A call already in progress is allowed to finish.
        :param wait: when True, blocks until the background thread has exited. Never waits
            when called from the timer's own thread.
        """
        self.stop_event.set()
        thread = self.background_thread
        if wait and thread and thread is not threading.current_thread():
            thread.join()
