from __future__ import annotations

import contextlib
import logging
import selectors
import socket
import threading
from io import BufferedIOBase

from . import viewer_assets
from .channel import EventChannel
from .errors import BindFailure, TransportFailure
from .frames import contains_close_opcode, send_text
from .handshake import HandshakeState, internal_error_response, run_handshake

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 0


class Rendezvous:
    """Shared "a viewer is attached" flag with broadcast wake-up."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._attached = False

    @property
    def attached(self) -> bool:
        with self._cond:
            return self._attached

    def attach(self) -> None:
        with self._cond:
            self._attached = True
            self._cond.notify_all()

    def detach(self) -> None:
        with self._cond:
            self._attached = False
            self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._attached, timeout)


class VLogServer:
    """Accept loop serving the page and streaming events to one viewer.

    Connections are handled one at a time on the accept thread. While a
    viewer is streaming, further connections wait in the listen backlog.
    """

    poll_interval = 0.5
    handshake_timeout = 10.0

    def __init__(
        self,
        channel: EventChannel,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        page: bytes | None = None,
        rendezvous: Rendezvous | None = None,
    ) -> None:
        self.channel = channel
        self.host = host
        self.requested_port = port
        self.page = page if page is not None else viewer_assets.get_site_html_bytes()
        self.rendezvous = rendezvous or Rendezvous()
        self._listener: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()
        self._active: socket.socket | None = None
        self._active_lock = threading.Lock()
        self._upgraded = False

    @property
    def address(self) -> tuple[str, int]:
        if self._listener is None:
            raise RuntimeError("server is not bound")
        sockname = self._listener.getsockname()
        return sockname[0], sockname[1]

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def bind(self) -> None:
        if self._listener is not None:
            return
        try:
            self._listener = socket.create_server((self.host, self.requested_port))
        except OSError as exc:
            raise BindFailure(self.host, self.requested_port, str(exc)) from exc

    def start(self) -> None:
        self.bind()
        if self.running:
            return
        self._thread = threading.Thread(
            target=self.serve_forever, name="webvlog-accept", daemon=True
        )
        self._thread.start()

    def serve_forever(self) -> None:
        self.bind()
        assert self._listener is not None
        host, port = self.address
        logger.info("webvlog server started on %s:%s", host, port)
        with selectors.DefaultSelector() as selector:
            selector.register(self._listener, selectors.EVENT_READ)
            while not self._stopping.is_set():
                if not selector.select(self.poll_interval):
                    continue
                try:
                    conn, addr = self._listener.accept()
                except OSError:
                    if self._stopping.is_set():
                        break
                    logger.exception("webvlog accept failed")
                    break
                logger.info("vlogger connection from %s:%s", addr[0], addr[1])
                self._serve_connection(conn)

    def close(self) -> None:
        self._stopping.set()
        self.channel.close()
        with self._active_lock:
            active = self._active
        if active is not None:
            with contextlib.suppress(OSError):
                active.shutdown(socket.SHUT_RDWR)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        if self._listener is not None:
            self._listener.close()
        self.rendezvous.detach()

    def _serve_connection(self, conn: socket.socket) -> None:
        with self._active_lock:
            self._active = conn
        self._upgraded = False
        try:
            with conn:
                try:
                    self.handle_connection(conn)
                except TransportFailure:
                    logger.warning("vlogger session ended by transport failure", exc_info=True)
                except Exception as exc:
                    logger.exception("vlogger connection failed")
                    # A 500 is only meaningful before the switch to WebSocket.
                    if not self._upgraded:
                        with contextlib.suppress(OSError):
                            conn.sendall(internal_error_response(str(exc)))
        finally:
            with self._active_lock:
                self._active = None

    def handle_connection(self, conn: socket.socket) -> None:
        reader = conn.makefile("rb")
        writer = conn.makefile("wb")
        try:
            conn.settimeout(self.handshake_timeout)
            try:
                handshake = run_handshake(reader, on_upgrade=self._on_upgrade)
            except TimeoutError:
                logger.info("handshake timed out after %ss", self.handshake_timeout)
                return
            logger.debug("handshake finished: %s (%s)", handshake.state.value, handshake.status)
            if handshake.state is not HandshakeState.UPGRADED:
                writer.write(handshake.response(self.page))
                writer.flush()
                return
            try:
                try:
                    writer.write(handshake.response(self.page))
                    writer.flush()
                except OSError as exc:
                    raise TransportFailure(f"upgrade response failed: {exc}") from exc
                conn.settimeout(None)
                self._stream(conn, reader, writer)
            finally:
                self.rendezvous.detach()
        finally:
            with contextlib.suppress(OSError):
                writer.close()
            reader.close()

    def _on_upgrade(self) -> None:
        self._upgraded = True
        self.rendezvous.attach()

    def _stream(self, conn: socket.socket, reader: BufferedIOBase, writer: BufferedIOBase) -> None:
        session_closed = threading.Event()
        self.channel.clear_interrupt()
        watcher = threading.Thread(
            target=self._watch_for_close,
            args=(reader, session_closed),
            name="webvlog-close-watcher",
            daemon=True,
        )
        watcher.start()
        logger.info("vlogging client connected")
        try:
            while not session_closed.is_set():
                payload = self.channel.receive()
                if payload is None:
                    if self.channel.closed:
                        break
                    continue
                if session_closed.is_set():
                    self.channel.requeue(payload)
                    break
                try:
                    send_text(writer, payload)
                except OSError as exc:
                    self.channel.requeue(payload)
                    raise TransportFailure(f"frame write failed: {exc}") from exc
        finally:
            session_closed.set()
            with contextlib.suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)
            watcher.join(timeout=1.0)
            logger.info("vlogger connection closed")

    def _watch_for_close(self, reader: BufferedIOBase, session_closed: threading.Event) -> None:
        try:
            while not session_closed.is_set():
                chunk = reader.read1(64)
                if not chunk or contains_close_opcode(chunk):
                    break
        except (OSError, ValueError) as exc:
            logger.debug("close watcher stopped: %s", exc)
        finally:
            session_closed.set()
            self.channel.interrupt()
