import logging
import threading
from enum import Enum

from driverstation.support.events import EventSource
from driverstation.support.timers import PeriodicTimer

logger = logging.getLogger(__name__)

DISCOVERY_PERIOD = 1.0          # 1Hz while searching for the robot
HEARTBEAT_PERIOD = 0.02         # 50Hz once the robot has answered
MISSED_PACKET_THRESHOLD = 10    # heartbeats without a reply before the link is lost


class LinkState(Enum):
    SEARCHING = 'searching'
    CONNECTED = 'connected'


class LivenessMonitor:
    """
    Decides whether the robot is present and how fast to transmit.

    While searching, a control packet is sent at the slow discovery rate. Any datagram
    from the robot moves the link to connected, where packets are sent at the heartbeat
    rate and each heartbeat counts as a missed reply until the next datagram arrives.
    When more than `missed_packet_threshold` heartbeats go unanswered the link is lost
    and the monitor goes back to searching.

    Exactly one of the two timers runs at a time. Transitions happen under a lock since
    the timers and the receiver each call in from their own thread. The connected and
    disconnected events are fired, and packets are sent, after the lock is released, so a
    slow send never holds up a received datagram.

    :param transmit         callable that sends one control packet
    :param timer_factory    called as timer_factory(period, fn, name=...) to create a timer with
        start() and stop(wait) methods
    """

    def __init__(self, transmit, timer_factory=PeriodicTimer,
                 discovery_period=DISCOVERY_PERIOD, heartbeat_period=HEARTBEAT_PERIOD,
                 missed_packet_threshold=MISSED_PACKET_THRESHOLD, log=logger):
        self._transmit = transmit
        self._timer_factory = timer_factory
        self.discovery_period = discovery_period
        self.heartbeat_period = heartbeat_period
        self.missed_packet_threshold = missed_packet_threshold
        self.logger = log
        self.connected = EventSource('connected')
        self.disconnected = EventSource('disconnected')
        self._lock = threading.RLock()
        self._state = LinkState.SEARCHING
        self._missed_packets = 0
        self._timer = None
        self._running = False

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def missed_packets(self) -> int:
        return self._missed_packets

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """ starts searching for the robot. """
        with self._lock:
            if self._running:
                return
            self._running = True
            self._state = LinkState.SEARCHING
            self._start_timer(self.discovery_period, self.discovery_tick, 'discovery')

    def stop(self):
        """
        Cancels the active timer. If the link was connected, the disconnected event is fired.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_timer()
            was_connected = self._state is LinkState.CONNECTED
            self._state = LinkState.SEARCHING
        if was_connected:
            self.logger.info("link closed")
            self.disconnected.fire()

    def datagram_received(self):
        """
        Notes that a valid datagram arrived from the robot. Resets the missed packet count
        and, when searching, moves the link to connected.
        """
        with self._lock:
            if not self._running:
                return
            self._missed_packets = 0
            connecting = self._state is LinkState.SEARCHING
            if connecting:
                self._stop_timer()
                self._state = LinkState.CONNECTED
                self._start_timer(self.heartbeat_period, self.heartbeat_tick, 'heartbeat')
        if connecting:
            self.logger.info("robot found")
            self.connected.fire()

    def discovery_tick(self):
        """ sends a packet at the slow rate while searching. """
        with self._lock:
            if not self._running or self._state is not LinkState.SEARCHING:
                return
        self._transmit()

    def heartbeat_tick(self):
        """ sends a packet at the fast rate and checks for a lost link. """
        with self._lock:
            if not self._running or self._state is not LinkState.CONNECTED:
                return
            self._missed_packets += 1
            lost = self._missed_packets > self.missed_packet_threshold
            if lost:
                self._stop_timer()
                self._state = LinkState.SEARCHING
                self._start_timer(self.discovery_period, self.discovery_tick, 'discovery')
        self._transmit()
        if lost:
            self.logger.info("robot lost after %d missed packets", self._missed_packets)
            self.disconnected.fire()

    def _start_timer(self, period, fn, name):
        self._timer = self._timer_factory(period, fn, name=name)
        self._timer.start()

    def _stop_timer(self):
        timer = self._timer
        self._timer = None
        if timer is not None:
            # a tick may be waiting on the lock held here, so don't wait for the thread
            timer.stop(wait=False)
