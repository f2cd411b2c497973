"""
Command line driver station: finds the robot for a team and reports when the link
comes and goes.

    python -m driverstation --team 178
"""
import argparse
import logging
import sys
import threading

from driverstation.config.config import ConfigurationError, config_directory, load_station_config
from driverstation.protocol.codec import Mode
from driverstation.station import DriverStation
from driverstation.transport.udp import TransportError

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(prog='driverstation',
                                     description='Finds the robot for a team and reports when the link comes and goes.')
    parser.add_argument('-t', '--team', type=int, dest='team_number', help="team number of the robot")
    parser.add_argument('--alliance', choices=('red', 'blue'), help="alliance color (default red)")
    parser.add_argument('--position', type=int, choices=(1, 2, 3), help="alliance station position (default 1)")
    parser.add_argument('--mode', choices=[m.name.lower() for m in Mode if m is not Mode.EMERGENCY_STOP],
                        help="mode to request once started (default disabled)")
    target = parser.add_mutually_exclusive_group()
    target.add_argument('--address', help="send to this address instead of the robot's host name")
    target.add_argument('--mdns', action='store_true', help="look up the robot's host name with multicast DNS")
    target.add_argument('--team-address', action='store_true', help="send to the static 10.TE.AM.2 address")
    parser.add_argument('--telemetry', action='store_true', help="print each telemetry packet")
    parser.add_argument('--config', dest='config_directory', default=config_directory,
                        help="directory holding driverstation.cfg")
    parser.add_argument('-v', '--verbose', action='count', default=0, help="more logging, repeat for debug")
    return parser


def overrides_from_args(args) -> dict:
    """ converts the given command line options into configuration overrides """
    station = {k: getattr(args, k) for k in ('team_number', 'alliance', 'position', 'mode')
               if getattr(args, k) is not None}
    network = {}
    if args.address:
        network.update(resolver='static', address=args.address)
    elif args.mdns:
        network['resolver'] = 'mdns'
    elif args.team_address:
        network['resolver'] = 'team'
    overrides = {}
    if station:
        overrides['station'] = station
    if network:
        overrides['network'] = network
    return overrides


def configure_logging(verbosity):
    level = logging.WARNING if verbosity == 0 else logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def attach_printer(station: DriverStation, out=sys.stdout, show_telemetry=False):
    """ prints the link status, and optionally each telemetry record, as they happen """
    def write(line):
        print(line, file=out, flush=True)

    station.connected += lambda: write("connected!")
    station.disconnected += lambda: write("disconnected")
    if show_telemetry:
        station.telemetry.records += lambda r: write("pong %5d  mode 0x%02x  battery %s" %
                                                   (r.pong, r.mode, r.battery_voltage))


def main(argv=None, stop_event=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        config = load_station_config(overrides_from_args(args), args.config_directory)
    except ConfigurationError as e:
        print("driverstation: %s" % e, file=sys.stderr)
        return 2
    station = DriverStation(config)
    attach_printer(station, show_telemetry=args.telemetry)
    try:
        station.start()
    except TransportError as e:
        print("driverstation: %s" % e, file=sys.stderr)
        return 1
    stop_event = stop_event or threading.Event()
    try:
        while not stop_event.wait(0.5):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        station.stop()
    return 0
