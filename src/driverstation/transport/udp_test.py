import socket
import threading
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, calling, is_, none, raises

from driverstation.support.timers_test import debug_timeout
from driverstation.transport.udp import TransportError, UdpTransport

host = '127.0.0.1'


class UdpTransportTest(unittest.TestCase):
    """ functional test with real sockets on the loopback interface. """

    def setUp(self):
        self.robot = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.robot.bind((host, 0))
        self.robot.settimeout(2)
        self.sut = UdpTransport(robot_port=self.robot.getsockname()[1], station_port=0,
                                bind_address=host, poll_interval=0.05)

    def tearDown(self):
        self.sut.close()
        self.robot.close()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_send_reaches_robot(self):
        self.sut.start(Mock())
        assert_that(self.sut.send(b'\x00\x01\x01\x00\x10\x00', host), is_(True))
        data, _ = self.robot.recvfrom(64)
        assert_that(data, is_(b'\x00\x01\x01\x00\x10\x00'))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_datagrams_are_delivered(self):
        received = []
        arrived = threading.Event()

        def on_datagram(data, address):
            received.append(data)
            arrived.set()

        self.sut.start(on_datagram)
        self.robot.sendto(b'telemetry', self.sut.local_address)
        arrived.wait()
        assert_that(received, is_([b'telemetry']))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_callback_exception_does_not_stop_receiving(self):
        logged = threading.Semaphore(0)

        def on_datagram(data, address):
            raise ValueError("bad")

        self.sut.logger = Mock()
        self.sut.logger.exception.side_effect = lambda e: logged.release()
        self.sut.start(on_datagram)
        self.robot.sendto(b'1', self.sut.local_address)
        self.robot.sendto(b'2', self.sut.local_address)
        logged.acquire()
        logged.acquire()
        assert_that(self.sut.logger.exception.call_count, is_(2))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_close_stops_thread_and_closes_sockets(self):
        self.sut.start(Mock())
        thread = self.sut.background_thread
        self.sut.close()
        assert_that(thread.is_alive(), is_(False))
        assert_that(self.sut.open, is_(False))
        assert_that(self.sut.local_address, is_(none()))

    def test_send_when_closed_returns_false(self):
        assert_that(self.sut.send(b'x', host), is_(False))

    def test_socket_failure_is_transport_error(self):
        other = UdpTransport(sock_factory=Mock(side_effect=OSError("address in use")))
        assert_that(calling(other.start).with_args(Mock()), raises(TransportError, "unable to bind udp port"))
        assert_that(other.open, is_(False))

    def test_bind_failure_closes_receive_socket(self):
        sock = Mock()
        sock.bind.side_effect = OSError("address in use")
        sut = UdpTransport(sock_factory=Mock(return_value=sock))
        assert_that(calling(sut.start).with_args(Mock()), raises(TransportError))
        sock.close.assert_called_once_with()

    def test_send_failure_is_logged_not_raised(self):
        send_sock = Mock()
        send_sock.sendto.side_effect = OSError("network unreachable")
        self.sut.send_sock = send_sock
        self.sut.logger = Mock()
        self.sut._lookup = Mock(return_value='10.1.78.2')
        assert_that(self.sut.send(b'x', 'roboRIO-178.local'), is_(False))
        send_sock.sendto.assert_called_once_with(b'x', ('10.1.78.2', self.sut.robot_port))
        assert_that(self.sut.logger.warning.call_count, is_(1))


class AddressLookupTest(unittest.TestCase):

    def setUp(self):
        self.lookup = Mock(return_value='10.1.78.2')
        self.send_sock = Mock()
        self.sut = UdpTransport(lookup=self.lookup, log=Mock())
        self.sut.send_sock = self.send_sock

    def test_host_is_looked_up_once(self):
        for _ in range(50):
            self.sut.send(b'x', 'roboRIO-178.local')
        self.lookup.assert_called_once_with('roboRIO-178.local')
        assert_that(self.send_sock.sendto.call_count, is_(50))
        self.send_sock.sendto.assert_called_with(b'x', ('10.1.78.2', self.sut.robot_port))

    def test_failed_lookup_is_logged_and_retried(self):
        self.lookup.side_effect = [socket.gaierror("name not known"), '10.1.78.2']
        assert_that(self.sut.send(b'x', 'roboRIO-178.local'), is_(False))
        self.send_sock.sendto.assert_not_called()
        assert_that(self.sut.logger.warning.call_count, is_(1))
        assert_that(self.sut.send(b'x', 'roboRIO-178.local'), is_(True))
        assert_that(self.lookup.call_count, is_(2))

    def test_forget_addresses(self):
        self.sut.send(b'x', 'roboRIO-178.local')
        self.sut.forget_addresses()
        self.sut.send(b'x', 'roboRIO-178.local')
        assert_that(self.lookup.call_count, is_(2))
