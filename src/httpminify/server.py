"""
=============================================================================
HOST SERVER
=============================================================================

A small threaded HTTP/1.1 server for the middleware to sit in: the CLI
serves a directory with it, and the integration tests drive it over real
sockets.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop (calling thread)                                      │
    │        │                                                             │
    │        │ Connection(socket)                                         │
    │        ▼                                                             │
    │   WorkerPool.submit(_process_connection)                            │
    │        │                                                             │
    │        ▼                                                             │
    │   worker thread, per request on the connection:                     │
    │        read_request ─► RequestParser ─► ResponseStream(conn.send)   │
    │             ─► middleware pipeline ─► handler(request, response)    │
    │             ─► response.end() if the handler didn't                 │
    │             ─► keep-alive? loop : close                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A handler that raises before its headers went out gets a 500. After that
the only honest option is dropping the connection.

=============================================================================
"""

import json
import logging
import signal
import socket
import threading
from http import HTTPStatus
from typing import Optional, Tuple

from .config import ServerConfig
from .core.connection import Connection, ConnectionClosed, ConnectionState
from .core.worker_pool import WorkerPool
from .http.request import HTTPParseError, RequestParser
from .http.response import ResponseStream
from .middleware.base import Handler, Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded server around one streaming handler.

    Usage:
        server = HTTPServer(StaticFileHandler("public"), ServerConfig(port=8000))
        server.use(LoggingMiddleware())
        server.use(MinifyMiddleware(MinifyConfig(cache=".cache")))
        server.run()

    In tests, start() binds and returns; serve_forever() runs the accept
    loop (typically on a thread) until shutdown().
    """

    def __init__(self, handler: Handler, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._handler = handler
        self._middleware = MiddlewarePipeline()
        self._wrapped: Optional[Handler] = None
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._pool = WorkerPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            name="HTTPWorker",
        )

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._stopped = threading.Event()
        self._original_handlers: dict = {}

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; first added is outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when configured with 0."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> "HTTPServer":
        """Bind, listen and start the workers. Does not block."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        # accept() wakes up periodically to notice shutdown()
        sock.settimeout(0.5)

        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        sock.listen(self.config.backlog)
        self._socket = sock
        self._wrapped = self._middleware.wrap(self._handler)
        self._pool.start()
        self._running = True
        self._stopped.clear()

        host, port = self.address
        logger.info(f"Listening on http://{host}:{port}")
        return self

    def serve_forever(self) -> None:
        """Accept connections until shutdown()."""
        try:
            while self._running:
                try:
                    client_socket, client_address = self._socket.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._running:
                        logger.error(f"Accept error: {e}")
                    break

                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                    keep_alive_timeout=self.config.keep_alive_timeout,
                    max_request_size=self.config.max_request_size,
                )
                self._dispatch(conn)
        finally:
            self._cleanup()

    def run(self) -> None:
        """Start and serve in the foreground, stopping on SIGINT/SIGTERM."""
        self._setup_logging()
        self.start()
        self._setup_signals()
        try:
            self.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._restore_signals()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop accepting, then wait for the accept loop to wind down."""
        if not self._running:
            return
        logger.info("Shutting down server...")
        self._running = False
        self._stopped.wait(timeout)

    def _cleanup(self):
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
        self._pool.shutdown(wait=True, timeout=10.0)
        self._running = False
        self._stopped.set()
        logger.info("Server stopped")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpminify").setLevel(level)

    def _setup_signals(self):
        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self._running = False

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _dispatch(self, conn: Connection):
        try:
            self._pool.submit(self._process_connection, conn)
        except Exception as e:
            logger.warning(f"[{conn.id}] Rejecting connection: {e}")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    self._send_error(conn, HTTPStatus.REQUEST_ENTITY_TOO_LARGE, str(e))
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    self._send_error(conn, e.status_code, str(e))
                    break

                keep_alive = self.config.keep_alive and request.is_keep_alive
                response = ResponseStream(
                    conn.send,
                    request_method=request.method,
                    version=request.version,
                    server_name=self.config.server_name,
                    keep_alive=keep_alive,
                )

                conn.state = ConnectionState.PROCESSING
                try:
                    self._wrapped(request, response)
                    if not response.finished:
                        response.end()
                except ConnectionClosed as e:
                    logger.debug(str(e))
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    if response.headers_sent:
                        break
                    self._send_error(
                        conn, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"
                    )
                    break

                if not response.keep_alive:
                    break
                conn.state = ConnectionState.KEEP_ALIVE

    def _send_error(self, conn: Connection, status: int, message: str):
        """Answer with a small JSON error and Connection: close."""
        response = ResponseStream(
            conn.send,
            server_name=self.config.server_name,
            keep_alive=False,
        )
        response.status = status
        response.set_header("Content-Type", "application/json")
        try:
            response.end(json.dumps({"error": message}))
        except ConnectionClosed:
            pass  # nobody left to tell
