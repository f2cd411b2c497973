"""
Strategies for finding the robot's address from the team number.

The robot controller registers a multicast DNS host name derived from the team number.
By default the station sends to that host name and leaves resolution to the operating
system. Where the OS has no mDNS support the name can be looked up directly with
zeroconf, and a literal address can be given when the robot is on a fixed IP.
"""
import logging

from zeroconf import AddressResolverIPv4, Zeroconf

logger = logging.getLogger(__name__)

ROBOT_HOSTNAME = 'roboRIO-{team}.local'


def robot_hostname(team_number: int) -> str:
    """
    >>> robot_hostname(178)
    'roboRIO-178.local'
    """
    return ROBOT_HOSTNAME.format(team=team_number)


def team_address(team_number: int, host=2) -> str:
    """
    The conventional static address on a team network, 10.TE.AM.host.
    >>> team_address(178)
    '10.1.78.2'
    >>> team_address(4)
    '10.0.4.2'
    >>> team_address(12345)
    '10.123.45.2'
    """
    return '10.%d.%d.%d' % (team_number // 100, team_number % 100, host)


class AddressResolver:
    """ Produces the host name or address the control packets are sent to. """

    def resolve(self, team_number: int) -> str:
        raise NotImplementedError


class TeamHostnameResolver(AddressResolver):
    """ the robot's mDNS host name, looked up by the transport when first sent to """

    def __init__(self, template=ROBOT_HOSTNAME):
        self.template = template

    def resolve(self, team_number):
        return self.template.format(team=team_number)


class StaticAddressResolver(AddressResolver):
    """ a fixed address that ignores the team number """

    def __init__(self, address):
        if not address:
            raise ValueError("a static address is required")
        self.address = address

    def resolve(self, team_number):
        return self.address


class TeamAddressResolver(AddressResolver):
    """ the 10.TE.AM.2 address used when the robot radio hands out static addresses """

    def resolve(self, team_number):
        return team_address(team_number)


class MdnsAddressResolver(AddressResolver):
    """
    Looks up the robot's host name with a multicast DNS query.
    When no answer arrives within the timeout the host name itself is returned, so
    sends fall back to the OS resolver.

    :param timeout  seconds to wait for an answer
    """

    def __init__(self, timeout=3.0, fallback: AddressResolver=None, zeroconf_factory=Zeroconf):
        self.timeout = timeout
        self.fallback = fallback or TeamHostnameResolver()
        self._zeroconf_factory = zeroconf_factory

    def resolve(self, team_number):
        hostname = self.fallback.resolve(team_number)
        zeroconf = self._zeroconf_factory()
        try:
            resolver = AddressResolverIPv4(hostname.rstrip('.') + '.')
            if resolver.request(zeroconf, int(self.timeout * 1000)):
                addresses = resolver.parsed_addresses()
                if addresses:
                    logger.info("resolved %s to %s", hostname, addresses[0])
                    return addresses[0]
        finally:
            zeroconf.close()
        logger.warning("no mDNS answer for %s, using the host name", hostname)
        return hostname


resolvers = {
    'hostname': TeamHostnameResolver,
    'team': TeamAddressResolver,
    'mdns': MdnsAddressResolver,
    'static': StaticAddressResolver,
}


def build_resolver(kind='hostname', address=None) -> AddressResolver:
    """
    Creates a resolver by name. A static resolver requires the address.
    >>> build_resolver('static', '10.1.78.2').resolve(178)
    '10.1.78.2'
    """
    if kind not in resolvers:
        raise ValueError("unknown resolver '%s', expected one of %s" % (kind, ', '.join(sorted(resolvers))))
    if kind == 'static':
        return StaticAddressResolver(address)
    return resolvers[kind]()
