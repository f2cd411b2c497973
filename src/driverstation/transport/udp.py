import logging
import socket
import threading

from driverstation.protocol.codec import ROBOT_PORT, STATION_PORT

logger = logging.getLogger(__name__)

MAX_DATAGRAM_SIZE = 1500


class TransportError(Exception):
    """ Indicates the sockets could not be opened. """


class UdpTransport:
    """
    Sends control packets to the robot and delivers the datagrams the robot sends back.

    Sends are fire and forget; a failed send is logged and reported by the return value,
    since the next periodic send tries again. Received datagrams are delivered to the
    on_datagram callback from a background thread.

    :param robot_port       the port the robot listens on
    :param station_port     the local port bound to receive telemetry
    :param bind_address     the local interface address. The empty string binds all interfaces.
    :param poll_interval    how often the receive thread checks whether it has been stopped
    """

    def __init__(self, robot_port=ROBOT_PORT, station_port=STATION_PORT, bind_address='',
                 poll_interval=0.25, sock_factory=socket.socket, lookup=socket.gethostbyname, log=logger):
        self.robot_port = robot_port
        self.station_port = station_port
        self.bind_address = bind_address
        self.poll_interval = poll_interval
        self._sock_factory = sock_factory
        self._lookup = lookup
        self._addresses = {}
        self.logger = log
        self.receive_sock = None
        self.send_sock = None
        self.stop_event = threading.Event()
        self.background_thread = None
        self._on_datagram = None

    @property
    def open(self) -> bool:
        return self.receive_sock is not None

    @property
    def local_address(self):
        return self.receive_sock.getsockname() if self.receive_sock else None

    def start(self, on_datagram):
        """
        Binds the receive socket, opens the send socket and starts delivering datagrams.
        :param on_datagram: called with (data, address) for each datagram received
        :raises TransportError: when either socket cannot be opened
        """
        if self.open:
            return
        receive_sock = None
        try:
            receive_sock = self._sock_factory(socket.AF_INET, socket.SOCK_DGRAM)
            receive_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            receive_sock.bind((self.bind_address, self.station_port))
            receive_sock.settimeout(self.poll_interval)
            send_sock = self._sock_factory(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            if receive_sock is not None:
                receive_sock.close()
            raise TransportError("unable to bind udp port %s: %s" % (self.station_port, e)) from e
        self.receive_sock = receive_sock
        self.send_sock = send_sock
        self._on_datagram = on_datagram
        self.stop_event.clear()
        self.logger.info("listening for robot packets on %s", self.local_address)
        t = threading.Thread(target=self._run, name='udp-receive', daemon=True)
        self.background_thread = t
        t.start()

    def send(self, data: bytes, host: str) -> bool:
        """
        Sends a datagram to the robot port on the given host.
        :return: True if the datagram was handed to the network, False if the send failed.
        """
        sock = self.send_sock
        if sock is None:
            self.logger.debug("transport closed, not sending to %s", host)
            return False
        try:
            sock.sendto(data, (self.address_for(host), self.robot_port))
            return True
        except OSError as e:
            self.logger.warning("send to %s:%s failed: %s", host, self.robot_port, e)
            return False

    def address_for(self, host: str) -> str:
        """
        Looks the host name up once and reuses the answer, so periodic sends don't wait on a
        name lookup each time. A failed lookup is not remembered.
        """
        address = self._addresses.get(host)
        if address is None:
            address = self._addresses[host] = self._lookup(host)
            if address != host:
                self.logger.info("%s is at %s", host, address)
        return address

    def forget_addresses(self):
        """ drops remembered lookups; the next send looks the host up again """
        self._addresses.clear()

    def _run(self):
        sock = self.receive_sock
        while not self.stop_event.is_set():
            try:
                data, address = sock.recvfrom(MAX_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if not self.stop_event.is_set():
                    self.logger.error("receive failed, closing: %s", e)
                break
            self._deliver(data, address)
        self.logger.debug("receive thread exiting")

    def _deliver(self, data, address):
        try:
            self._on_datagram(data, address)
        except Exception as e:
            self.logger.exception(e)

    def close(self):
        """ stops the receive thread and closes both sockets. """
        self.stop_event.set()
        thread = self.background_thread
        self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join()
        for sock in (self.receive_sock, self.send_sock):
            if sock is not None:
                sock.close()
        self.receive_sock = None
        self.send_sock = None
