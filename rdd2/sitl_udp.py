"""UDP link between the flight stack and a simulator."""

from __future__ import annotations

import argparse
import logging
import socket
import threading

from rdd2.rc_input import RcInput
from rdd2.sitl_flatbuffer import SimInputError
from rdd2.sitl_transport import INPUT_MAX_SIZE, SitlTransport
from rdd2.topic_bus import TopicBus

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.001


def _check_port(name: str, port: int) -> int:
    port = int(port)
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"{name} out of range: {port}")
    return port


class UdpCoordinator:
    """Receives simulator input on one port and sends topic blobs to two others."""

    def __init__(
        self,
        transport: SitlTransport,
        host: str,
        rx_port: int,
        flight_port: int,
        motor_port: int,
    ) -> None:
        self.transport = transport
        self.host = host
        self.rx_port = _check_port("rx_port", rx_port)
        self.flight_port = _check_port("flight_port", flight_port)
        self.motor_port = _check_port("motor_port", motor_port)
        self._rx_sock: socket.socket | None = None
        self._tx_sock: socket.socket | None = None
        self._last_flight_generation = 0
        self._last_motor_generation = 0

    @staticmethod
    def _make_socket(bind_port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setblocking(False)
            if bind_port != 0:
                sock.bind(("", bind_port))
        except OSError:
            sock.close()
            raise
        return sock

    def open(self) -> None:
        """Create the sockets; raises OSError or ValueError on failure."""
        try:
            socket.inet_pton(socket.AF_INET, self.host)
        except OSError as exc:
            raise ValueError(f"invalid IPv4 host: {self.host!r}") from exc

        self._rx_sock = self._make_socket(self.rx_port)
        try:
            self._tx_sock = self._make_socket(0)
        except OSError:
            self.close()
            raise
        logger.info(
            "sitl udp rx=%d tx_flight=%d tx_motor=%d host=%s",
            self.rx_port,
            self.flight_port,
            self.motor_port,
            self.host,
        )

    def close(self) -> None:
        """Close any open sockets."""
        for sock in (self._rx_sock, self._tx_sock):
            if sock is not None:
                sock.close()
        self._rx_sock = None
        self._tx_sock = None

    def __enter__(self) -> "UdpCoordinator":
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _require_open(self) -> tuple[socket.socket, socket.socket]:
        if self._rx_sock is None or self._tx_sock is None:
            raise RuntimeError("coordinator is not open")
        return self._rx_sock, self._tx_sock

    def drain_rx(self) -> int:
        """Handle every pending datagram; return how many were accepted."""
        rx_sock, _ = self._require_open()
        accepted = 0
        while True:
            try:
                data, _source = rx_sock.recvfrom(INPUT_MAX_SIZE)
            except BlockingIOError:
                break
            except OSError as exc:
                logger.warning("sitl rx failed: %s", exc)
                break
            try:
                self.transport.handle_input_blob(data)
            except (SimInputError, ValueError):
                continue
            accepted += 1
        return accepted

    def send_updates(self) -> int:
        """Send flight-state and motor-output blobs that changed; return how many."""
        _, tx_sock = self._require_open()
        sent = 0

        update = self.transport.flight_state_blob_if_updated(self._last_flight_generation)
        if update is not None:
            blob, self._last_flight_generation = update
            if self._send(tx_sock, blob, self.flight_port):
                sent += 1

        update = self.transport.motor_output_blob_if_updated(self._last_motor_generation)
        if update is not None:
            blob, self._last_motor_generation = update
            if self._send(tx_sock, blob, self.motor_port):
                sent += 1

        return sent

    def _send(self, sock: socket.socket, blob: bytes, port: int) -> bool:
        try:
            sock.sendto(blob, (self.host, port))
        except OSError as exc:
            logger.debug("sitl tx to port %d failed: %s", port, exc)
            return False
        return True

    def run(self, stop_event: threading.Event) -> None:
        """Poll receive and send until ``stop_event`` is set."""
        while not stop_event.is_set():
            self.drain_rx()
            self.send_updates()
            stop_event.wait(_POLL_INTERVAL_S)


def main(argv=None) -> int:
    """Run the UDP simulator link until interrupted."""
    parser = argparse.ArgumentParser(
        prog="rdd2-sitl-udp", description="Exchange SITL FlatBuffer blobs over UDP."
    )
    parser.add_argument("--host", default="127.0.0.1", help="simulator IPv4 address")
    parser.add_argument("--rx-port", type=int, default=4243, help="port for simulator input")
    parser.add_argument("--flight-port", type=int, default=4244, help="flight-state port")
    parser.add_argument("--motor-port", type=int, default=4245, help="motor-output port")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    bus = TopicBus()
    transport = SitlTransport(bus, RcInput(bus))
    stop_event = threading.Event()
    try:
        with UdpCoordinator(
            transport, args.host, args.rx_port, args.flight_port, args.motor_port
        ) as coordinator:
            coordinator.run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    except (OSError, ValueError) as exc:
        logger.error("sitl udp init failed: %s", exc)
        return 1
    return 0