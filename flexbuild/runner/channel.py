"""Socket channel between the coordinator and a running test binary.

The binary opens two TCP connections to the coordinator:

- control (default port 13540): opened as soon as the binary is loaded;
  frames sent on it are heartbeats. Closing it means the runtime died.
- result (default port 13539): carries the test reports.

Frames on both connections are UTF-8 strings terminated by a NUL byte.
Background pump threads turn socket activity into ChannelEvents on a
bounded queue; the coordinator consumes them with an explicit timeout.
Closing the channel stops the pumps.
"""

import queue
import socket
import threading
from dataclasses import dataclass
from enum import Enum

import structlog

log = structlog.get_logger("flexbuild.channel")

FRAME_DELIMITER = b"\0"

POLICY_FILE_REQUEST = "<policy-file-request/>"
END_OF_TEST_RUN = "<endOfTestRun/>"
END_OF_TEST_RUN_ACK = "<endOfTestRunAck/>"

# Socket policy served to runtimes that ask before connecting
POLICY_DOCUMENT = (
    '<?xml version="1.0"?>'
    '<cross-domain-policy><allow-access-from domain="*" to-ports="*"/></cross-domain-policy>'
)

# Polling interval for accept/recv so pumps notice close()
POLL_INTERVAL = 0.2

DEFAULT_QUEUE_SIZE = 256


class Source(str, Enum):
    CONTROL = "control"
    RESULT = "result"


class EventKind(str, Enum):
    CONNECTED = "connected"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ChannelEvent:
    """Something that happened on one of the two connections."""
    source: Source
    kind: EventKind
    payload: str = ""


class ChannelClosed(Exception):
    """Raised by receive() once the channel has been closed."""


class TestChannel:
    """Listening sockets for one binary's control and result connections."""

    __test__ = False

    def __init__(
        self,
        control_port: int,
        result_port: int,
        host: str = "127.0.0.1",
        max_pending: int = DEFAULT_QUEUE_SIZE,
    ):
        """Initialize the channel.

        Args:
            control_port: Port for the control connection (0 = any free port).
            result_port: Port for the result connection (0 = any free port).
            host: Interface to bind.
            max_pending: Bound of the event queue.
        """
        self.host = host
        self._requested_ports = {Source.CONTROL: control_port, Source.RESULT: result_port}
        self._events: queue.Queue = queue.Queue(maxsize=max_pending)
        self._closed = threading.Event()
        self._listeners: dict[Source, socket.socket] = {}
        self._connections: dict[Source, socket.socket] = {}
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    @property
    def control_port(self) -> int:
        return self._port(Source.CONTROL)

    @property
    def result_port(self) -> int:
        return self._port(Source.RESULT)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def open(self) -> "TestChannel":
        """Bind both listeners and start pumping events.

        Raises:
            OSError: If a port cannot be bound.
        """
        try:
            for source, port in self._requested_ports.items():
                self._listeners[source] = self._create_socket(port)
        except OSError:
            self.close()
            raise

        for source, listener in self._listeners.items():
            thread = threading.Thread(
                target=self._pump,
                args=(source, listener),
                name=f"flexbuild-{source.value}-channel",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        log.debug("channel.opened", control_port=self.control_port, result_port=self.result_port)
        return self

    def receive(self, timeout: float) -> ChannelEvent:
        """Next event, waiting at most ``timeout`` seconds.

        Raises:
            TimeoutError: If nothing arrives in time.
            ChannelClosed: If the channel was closed.
        """
        if self.closed:
            raise ChannelClosed()
        try:
            event = self._events.get(timeout=max(timeout, 0.0))
        except queue.Empty:
            raise TimeoutError(f"No channel activity within {timeout:.1f}s") from None
        if event is None:
            raise ChannelClosed()
        return event

    def send(self, source: Source, message: str) -> None:
        """Send one frame on the current connection of ``source``."""
        with self._lock:
            connection = self._connections.get(source)
        if connection is None:
            log.debug("channel.send_dropped", source=source.value, reason="not connected")
            return
        try:
            connection.sendall(message.encode("utf-8") + FRAME_DELIMITER)
        except OSError as e:
            log.debug("channel.send_failed", source=source.value, error=str(e))

    def close(self) -> None:
        """Close every socket; pump threads exit on their next poll."""
        if self._closed.is_set():
            return
        self._closed.set()

        with self._lock:
            sockets = list(self._connections.values()) + list(self._listeners.values())
            self._connections.clear()
        for sock in sockets:
            try:
                sock.close()
            except OSError:
                pass

        for thread in self._threads:
            thread.join(timeout=POLL_INTERVAL * 5)

        # Wake a consumer blocked in receive()
        try:
            self._events.put_nowait(None)
        except queue.Full:
            pass

    def _create_socket(self, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.host, port))
        sock.listen(1)
        sock.settimeout(POLL_INTERVAL)
        return sock

    def _port(self, source: Source) -> int:
        listener = self._listeners.get(source)
        if listener is None:
            return self._requested_ports[source]
        return listener.getsockname()[1]

    def _pump(self, source: Source, listener: socket.socket) -> None:
        """Accept connections on ``listener`` and forward their frames."""
        while not self._closed.is_set():
            try:
                connection, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            connection.settimeout(POLL_INTERVAL)
            with self._lock:
                self._connections[source] = connection
            self._post(ChannelEvent(source, EventKind.CONNECTED))

            try:
                self._read_frames(source, connection)
            finally:
                with self._lock:
                    if self._connections.get(source) is connection:
                        del self._connections[source]
                try:
                    connection.close()
                except OSError:
                    pass

            if not self._closed.is_set():
                self._post(ChannelEvent(source, EventKind.DISCONNECTED))

    def _read_frames(self, source: Source, connection: socket.socket) -> None:
        buffer = b""
        while not self._closed.is_set():
            try:
                data = connection.recv(4096)
            except socket.timeout:
                continue
            except OSError:
                return

            if not data:
                return

            buffer += data
            while FRAME_DELIMITER in buffer:
                frame, buffer = buffer.split(FRAME_DELIMITER, 1)
                text = frame.decode("utf-8", errors="replace").strip()
                if text:
                    self._post(ChannelEvent(source, EventKind.MESSAGE, text))

    def _post(self, event: ChannelEvent) -> None:
        """Queue an event, blocking while the queue is full unless closed."""
        while not self._closed.is_set():
            try:
                self._events.put(event, timeout=POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()

