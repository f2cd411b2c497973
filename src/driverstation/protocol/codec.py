"""
Encodes the control packet sent to the robot and decodes the telemetry packets it sends back.

The control bytes were obtained by capturing traffic between a driver station and a robot
controller. Both directions are big-endian.

Control packet (station -> robot, 6 bytes):

    offset  width   field
    0       2       ping, a counter that wraps at 65536
    2       1       reserved, always 0x01
    3       1       mode
    4       1       reboot action
    5       1       reserved, always 0x00

Telemetry packet (robot -> station, at least 7 bytes):

    offset  width   field
    0       2       pong, the robot's echo of the counter
    3       1       mode, as reported by the robot
    5       1       battery voltage, integer part
    6       1       battery voltage, fractional part
"""
import struct
from enum import IntEnum
from typing import NamedTuple

# UDP ports each end is listening on
ROBOT_PORT = 1110
STATION_PORT = 1150

CONTROL_PACKET_SIZE = 6
TELEMETRY_MIN_SIZE = 7

RESERVED_3 = 0x01
RESERVED_6 = 0x00

PING_MODULUS = 0x10000

_control_format = struct.Struct('>HBBBB')


class MalformedPacketError(ValueError):
    """ Raised when an inbound datagram is too short to be a telemetry packet. """


class _ParseableEnum(IntEnum):

    @classmethod
    def parse(cls, name):
        """
        Looks up a member by name, ignoring case and treating '-' and ' ' like '_'.
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().upper().replace('-', '_').replace(' ', '_')
        try:
            return cls[key]
        except KeyError:
            choices = ', '.join(m.name.lower() for m in cls)
            raise ValueError("unknown %s '%s', expected one of %s" % (cls.__name__, name, choices)) from None


class Mode(_ParseableEnum):
    """ The operating mode requested of the robot. """
    DISABLED = 0x00
    TELEOPERATED = 0x04
    TEST = 0x05
    AUTONOMOUS = 0x06
    EMERGENCY_STOP = 0x80


class RebootAction(_ParseableEnum):
    """
    Sent when a reboot or restart is requested. IDLE is sent when no action is being
    requested at that moment.
    """
    IDLE = 0x10
    ROBOT_CODE = 0x14
    DEVICE_REBOOT = 0x18


class ControlPacketState:
    """
    The contents of the next control packet. The ping counter advances after each send
    so the first packet carries the initial value.
    """

    def __init__(self, ping=1, mode=Mode.DISABLED, reboot_action=RebootAction.IDLE):
        self.ping = ping % PING_MODULUS
        self.mode = Mode(mode)
        self.reboot_action = RebootAction(reboot_action)

    def advance_ping(self) -> int:
        """ increments the counter, wrapping at 16 bits, and returns the new value """
        self.ping = (self.ping + 1) % PING_MODULUS
        return self.ping

    def __eq__(self, other):
        return isinstance(other, ControlPacketState) and \
            (self.ping, self.mode, self.reboot_action) == (other.ping, other.mode, other.reboot_action)

    def __repr__(self):
        return "ControlPacketState(ping=%d, mode=%s, reboot_action=%s)" % \
            (self.ping, self.mode.name, self.reboot_action.name)


class TelemetryRecord(NamedTuple):
    """ One telemetry packet from the robot. """
    pong: int
    mode: int
    battery_voltage: str


def encode_control(state: ControlPacketState) -> bytes:
    """
    Encodes the control packet for the given state.
    >>> encode_control(ControlPacketState()).hex()
    '000101001000'
    """
    return _control_format.pack(state.ping, RESERVED_3, state.mode, state.reboot_action, RESERVED_6)


def battery_voltage(whole: int, fraction: int) -> str:
    """
    Renders the two battery bytes as hex digit pairs joined by a dot. This is how the
    reading has been observed on the wire; it is kept as text rather than converted
    to a number.
    >>> battery_voltage(0x0C, 0x05)
    '0c.05'
    """
    return '%02x.%02x' % (whole, fraction)


def decode_telemetry(data: bytes) -> TelemetryRecord:
    """
    Decodes a telemetry packet. The mode byte is returned raw since the robot's
    encoding is not guaranteed to match Mode.
    :raises MalformedPacketError: when data is shorter than TELEMETRY_MIN_SIZE bytes
    """
    if data is None or len(data) < TELEMETRY_MIN_SIZE:
        raise MalformedPacketError("telemetry packet needs %d bytes, got %d" %
                                   (TELEMETRY_MIN_SIZE, 0 if data is None else len(data)))
    pong = struct.unpack_from('>H', data, 0)[0]
    return TelemetryRecord(pong, data[3], battery_voltage(data[5], data[6]))
