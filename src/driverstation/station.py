import inspect
import logging
import threading

from driverstation.config.config import StationConfig
from driverstation.liveness import LinkState, LivenessMonitor
from driverstation.protocol.codec import ControlPacketState, MalformedPacketError, Mode, RebootAction, \
    TelemetryRecord, decode_telemetry, encode_control
from driverstation.support.timers import PeriodicTimer
from driverstation.telemetry import TelemetrySink
from driverstation.transport.resolve import AddressResolver, build_resolver
from driverstation.transport.udp import TransportError, UdpTransport

logger = logging.getLogger(__name__)


class StationStateError(Exception):
    """ The station was asked to start or stop when it could not. """


class DriverStation:
    """
    Talks to one robot over UDP.

    Control packets are sent at the discovery rate until the robot answers, then at the
    heartbeat rate for as long as it keeps answering. Each valid telemetry packet is
    pushed to the `telemetry` sink. Subscribe to `connected` and `disconnected` to follow
    the link.

    A station is started once and stopped once; build a new one to reconnect after stop().

    :param config       the validated station settings
    :param transport    sends and receives datagrams. Defaults to a UdpTransport on the configured ports.
    :param resolver     finds the robot's address from the team number. Defaults to the configured resolver.
    """

    def __init__(self, config: StationConfig, transport=None, resolver: AddressResolver=None,
                 timer_factory=PeriodicTimer, log=logger):
        self.config = config
        self.transport = transport or UdpTransport(config.robot_port, config.station_port, config.bind_address)
        self.resolver = resolver or build_resolver(config.resolver, config.address)
        self.logger = log
        self.packet = ControlPacketState(mode=Mode.parse(config.mode))
        self._packet_lock = threading.Lock()
        self.monitor = LivenessMonitor(self._send, timer_factory,
                                       config.discovery_period, config.heartbeat_period,
                                       config.missed_packet_threshold)
        self.telemetry = TelemetrySink()
        self.monitor.disconnected += self._link_lost
        self.host = None
        self.last_telemetry = None
        self._started = False
        self._stopped = False

    @property
    def team_number(self) -> int:
        return self.config.team_number

    @property
    def alliance(self) -> str:
        return self.config.alliance

    @property
    def position(self) -> int:
        return self.config.position

    @property
    def connected(self):
        """ fired with no arguments when the robot is found """
        return self.monitor.connected

    @property
    def disconnected(self):
        """ fired with no arguments when the robot is lost, or the station is stopped while connected """
        return self.monitor.disconnected

    @property
    def state(self) -> LinkState:
        return self.monitor.state

    @property
    def is_connected(self) -> bool:
        return self.monitor.state is LinkState.CONNECTED

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self):
        """
        Resolves the robot's address, binds the sockets and starts searching for the robot.
        :raises TransportError: when the address cannot be resolved or the sockets cannot be opened
        """
        if self._started:
            raise StationStateError("the station for team %d has already been started" % self.team_number)
        try:
            self.host = self.resolver.resolve(self.team_number)
        except OSError as e:
            raise TransportError("unable to resolve the robot for team %d: %s" % (self.team_number, e)) from e
        self.transport.start(self._datagram_received)
        self._started = True
        self.logger.info("searching for team %d robot at %s", self.team_number, self.host)
        self.monitor.start()

    def stop(self):
        """ stops sending, closes the sockets and ends the telemetry streams. """
        if not self.running:
            return
        self._stopped = True
        self.monitor.stop()
        self.transport.close()
        self.telemetry.close()
        self.logger.info("stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()

    @property
    def mode(self) -> Mode:
        return self.packet.mode

    @mode.setter
    def mode(self, mode):
        mode = Mode.parse(mode)
        with self._packet_lock:
            if self.packet.mode is not mode:
                self.logger.info("mode %s", mode.name.lower())
            self.packet.mode = mode

    @property
    def reboot_action(self) -> RebootAction:
        return self.packet.reboot_action

    @reboot_action.setter
    def reboot_action(self, action):
        action = RebootAction.parse(action)
        with self._packet_lock:
            self.packet.reboot_action = action

    @property
    def ping(self) -> int:
        """ the counter value the next control packet will carry """
        return self.packet.ping

    def enable(self, mode=Mode.TELEOPERATED):
        if Mode.parse(mode) in (Mode.DISABLED, Mode.EMERGENCY_STOP):
            raise ValueError("%s is not an enabled mode" % Mode.parse(mode).name.lower())
        self.mode = mode

    def disable(self):
        self.mode = Mode.DISABLED

    def emergency_stop(self):
        self.mode = Mode.EMERGENCY_STOP

    def request_reboot(self, action=RebootAction.ROBOT_CODE):
        """ the action is sent in every packet until reboot_action is set back to IDLE """
        self.reboot_action = action

    def _send(self):
        """ sends one control packet. The counter advances whether or not the send succeeded. """
        with self._packet_lock:
            data = encode_control(self.packet)
            self.packet.advance_ping()
        self.transport.send(data, self.host)

    def _link_lost(self):
        """ the robot may come back on a new address, so look its name up again """
        self.transport.forget_addresses()

    def _datagram_received(self, data, address=None):
        try:
            record = decode_telemetry(data)
        except MalformedPacketError as e:
            self.logger.debug("discarding packet from %s: %s", address, e)
            return
        if not self.monitor.running:
            self.logger.debug("discarding packet from %s received while the station is not running", address)
            return
        self.monitor.datagram_received()
        self._publish(record)

    def _publish(self, record: TelemetryRecord):
        self.last_telemetry = record
        self.telemetry.push(record)


def create_driver_station(team_number=None, alliance='red', position=1, **kwargs) -> DriverStation:
    """
    Builds a new, unstarted driver station. Keyword arguments are passed to StationConfig
    or DriverStation as their names match.
    :raises ConfigurationError: when the team number is missing or invalid, before anything is built
    """
    config_args = {k: v for k, v in kwargs.items() if k in inspect.signature(StationConfig).parameters}
    station_args = {k: v for k, v in kwargs.items() if k not in config_args}
    config = StationConfig(team_number, alliance, position, **config_args)
    return DriverStation(config, **station_args)
