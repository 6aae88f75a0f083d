"""
Proxy server implementation using asyncio.

The very high level overview is as follows:

    - Spawn one coroutine per client connection.
    - Read the request head and decide whether it is a plain request or a tunnel.
    - Ask the classifier whether the target is blocked.
    - Either answer right away (block page, 403, errors) or connect to the
      origin and relay bytes until one side closes.

Each client connection carries exactly one request. Both the client and the
server connection are closed when the handler finishes.
"""

from __future__ import annotations

import asyncio
import http
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import Literal

import h11

from siteblock import options as soptions
from siteblock.classify import Classifier
from siteblock.exceptions import ProtocolError
from siteblock.net import url
from siteblock.proxy import pages
from siteblock.proxy import relay
from siteblock.proxy.requests import from_h11
from siteblock.proxy.requests import PlainRequest
from siteblock.proxy.requests import ProxyRequest
from siteblock.proxy.requests import TunnelRequest
from siteblock.utils import asyncio_utils
from siteblock.utils import human

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset([b"connection", b"proxy-connection", b"keep-alive"])


def forward_headers(request: PlainRequest) -> list[tuple[bytes, bytes]]:
    """
    Header fields to send upstream: the client's fields in their original order
    without hop-by-hop connection headers, plus `Connection: close`.

    The Host header always names the authority of the request URL. A Host
    header sent along with an absolute-form target is replaced.
    """
    host = url.hostport(request.scheme, request.host, request.port)
    host_value = host.encode("utf-8", "surrogateescape")
    headers = []
    has_host = False
    for name, value in request.headers:
        lname = name.lower()
        if lname in HOP_BY_HOP_HEADERS:
            continue
        if lname == b"host":
            if has_host:
                continue
            has_host = True
            value = host_value
        headers.append((name, value))
    if not has_host:
        headers.insert(0, (b"Host", host_value))
    headers.append((b"Connection", b"close"))
    return headers


class ConnectionHandler:
    client_reader: asyncio.StreamReader
    client_writer: asyncio.StreamWriter
    server_writer: asyncio.StreamWriter | None
    conn: h11.Connection
    """HTTP/1 state of the client connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        classifier: Classifier,
        options: soptions.Options,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.client_reader = reader
        self.client_writer = writer
        self.server_writer = None
        self.classifier = classifier
        self.options = options
        self.peername = writer.get_extra_info("peername")
        self.conn = h11.Connection(h11.SERVER)

    async def handle_client(self) -> None:
        asyncio_utils.name_current_task("client handler", self.peername)
        self.log("client connect", logging.DEBUG)
        try:
            await self.handle_request()
        except Exception as e:
            self.log(
                f"connection handler has crashed: {e}",
                logging.ERROR,
                exc_info=(type(e), e, e.__traceback__),
            )
        finally:
            self.close()
            self.log("client disconnect", logging.DEBUG)

    async def handle_request(self) -> None:
        try:
            request = await self.read_request()
        except ProtocolError as e:
            self.log(f"malformed request: {e}")
            await self.respond(
                400, pages.format_error(400, str(e)), "text/html; charset=utf-8"
            )
            return
        except asyncio.TimeoutError:
            self.log("timeout while waiting for the request head", logging.DEBUG)
            return
        except OSError as e:
            self.log(f"client connection lost: {e!r}", logging.DEBUG)
            return

        if request is None:
            return
        if isinstance(request, TunnelRequest):
            await self.handle_tunnel(request)
        else:
            await self.handle_plain(request)

    async def next_event(self):
        """
        Read the next HTTP/1 event from the client.

        *Raises:*
         - ProtocolError, if the client violates HTTP/1 framing.
        """
        while True:
            try:
                event = self.conn.next_event()
            except h11.RemoteProtocolError as e:
                raise ProtocolError(str(e)) from e
            if event is h11.NEED_DATA:
                data = await self.client_reader.read(relay.CHUNK_SIZE)
                self.conn.receive_data(data)
            else:
                return event

    async def read_request(self) -> ProxyRequest | None:
        """
        Read the request head. Returns `None` if the client went away before sending one.
        """
        timeout = self.options.idle_timeout or None
        event = await asyncio.wait_for(self.next_event(), timeout)
        if not isinstance(event, h11.Request):
            return None
        return from_h11(event)

    async def handle_plain(self, request: PlainRequest) -> None:
        if self.options.blocking and self.classifier.is_blocked(request.url):
            self.log(f"blocked {request.url}")
            await self.respond(
                200, pages.format_blocked(request.url), "text/html; charset=utf-8"
            )
            return

        server = await self.open_server(request.host, request.port)
        if server is None:
            address = url.hostport(request.scheme, request.host, request.port)
            await self.respond(
                500,
                f"Proxy error: cannot connect to {address}.".encode(),
                "text/plain; charset=utf-8",
            )
            return
        server_reader, server_writer = server
        self.log(f"{request.method.decode()} {request.url}", logging.DEBUG)

        upstream = h11.Connection(h11.CLIENT)
        server_writer.write(
            upstream.send(
                h11.Request(
                    method=request.method,
                    target=request.path.encode("utf-8", "surrogateescape"),
                    headers=forward_headers(request),
                )
            )
        )

        writers = (self.client_writer, server_writer)
        watchdog, watch = relay.start_watchdog(
            self.options.idle_timeout, writers, self.peername
        )
        body = asyncio_utils.create_task(
            self.forward_body(upstream, server_writer, watchdog),
            name="request body",
            keep_ref=False,
            client=self.peername,
        )
        response = asyncio_utils.create_task(
            relay.pipe(server_reader, self.client_writer, watchdog),
            name="response",
            keep_ref=False,
            client=self.peername,
        )
        try:
            await asyncio.wait([body, response], return_when=asyncio.FIRST_COMPLETED)
            if body.done() and body.exception() is None:
                await asyncio.wait([response])
            await relay.finish(body, response, writers, self.peername)
        finally:
            if watch:
                watch.cancel()
            body.cancel()
            response.cancel()

    async def forward_body(
        self,
        upstream: h11.Connection,
        server_writer: asyncio.StreamWriter,
        watchdog: relay.IdleWatchdog | None,
    ) -> None:
        """Stream the request body to the server, keeping its framing."""
        while True:
            event = await self.next_event()
            if isinstance(event, (h11.Data, h11.EndOfMessage)):
                server_writer.write(upstream.send(event))
                await server_writer.drain()
                if watchdog:
                    watchdog.register_activity()
                if isinstance(event, h11.EndOfMessage):
                    return
            else:
                raise ProtocolError(f"Unexpected event in request body: {event!r}")

    async def handle_tunnel(self, request: TunnelRequest) -> None:
        try:
            while True:
                event = await self.next_event()
                if event is h11.PAUSED:
                    break
                if isinstance(event, h11.ConnectionClosed):
                    return
        except OSError as e:
            self.log(f"client connection lost: {e!r}", logging.DEBUG)
            return

        if self.options.blocking and self.classifier.is_tunnel_blocked(
            request.authority
        ):
            self.log(f"blocked tunnel to {request.authority}")
            await self.respond(403)
            return

        server = await self.open_server(request.host, request.port)
        if server is None:
            return
        server_reader, server_writer = server

        try:
            self.client_writer.write(
                self.conn.send(
                    h11.Response(
                        status_code=200, headers=[], reason=b"Connection Established"
                    )
                )
            )
            await self.client_writer.drain()

            buffered, _ = self.conn.trailing_data
            if buffered:
                server_writer.write(buffered)
                await server_writer.drain()
        except OSError as e:
            self.log(f"connection lost while opening tunnel: {e!r}", logging.DEBUG)
            return

        self.log(f"tunnel to {request.authority} established", logging.DEBUG)
        await relay.relay(
            self.client_reader,
            self.client_writer,
            server_reader,
            server_writer,
            idle_timeout=self.options.idle_timeout,
            client=self.peername,
        )

    async def open_server(
        self, host: str, port: int
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter] | None:
        """
        Connect to the origin server. Failures are logged and yield `None`, they are never retried.
        """
        address = human.format_address((host, port))
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                self.options.connect_timeout or None,
            )
        except (OSError, asyncio.TimeoutError) as e:
            err = str(e)
            if not err:  # str(TimeoutError()) returns empty string.
                err = "connection timed out"
            self.log(f"error establishing server connection to {address}: {err}")
            return None
        self.server_writer = writer
        self.log(f"server connect {address}", logging.DEBUG)
        return reader, writer

    async def respond(
        self,
        status_code: int,
        body: bytes = b"",
        content_type: str | None = None,
    ) -> None:
        """Send a complete response to the client. The connection is closed afterwards."""
        headers = []
        if content_type:
            headers.append((b"content-type", content_type.encode()))
        headers.append((b"content-length", str(len(body)).encode()))
        headers.append((b"connection", b"close"))
        try:
            events = [
                h11.Response(
                    status_code=status_code,
                    headers=headers,
                    reason=http.HTTPStatus(status_code).phrase.encode(),
                )
            ]
            if body:
                events.append(h11.Data(data=body))
            events.append(h11.EndOfMessage())
            data = b"".join(self.conn.send(e) or b"" for e in events)
        except h11.LocalProtocolError as e:
            self.log(f"cannot send {status_code} response: {e}", logging.DEBUG)
            return
        try:
            self.client_writer.write(data)
            await self.client_writer.drain()
        except OSError as e:
            self.log(f"cannot send {status_code} response: {e}", logging.DEBUG)

    def close(self) -> None:
        for writer in (self.server_writer, self.client_writer):
            if writer is not None:
                relay.close_writer(writer)

    def log(
        self,
        message: str,
        level: int = logging.INFO,
        exc_info: Literal[True]
        | tuple[type[BaseException], BaseException, TracebackType | None]
        | None = None,
    ) -> None:
        logger.log(level, message, extra={"client": self.peername}, exc_info=exc_info)


class ProxyServer:
    """
    The listener. Accepts client connections and hands each one to a ConnectionHandler.
    """

    connections: dict[str, ConnectionHandler]
    _servers: list[asyncio.Server]

    def __init__(self, options: soptions.Options, classifier: Classifier) -> None:
        self.options = options
        self.classifier = classifier
        self.connections = {}
        self._servers = []

    @property
    def is_running(self) -> bool:
        return bool(self._servers)

    @property
    def listen_addrs(self) -> tuple[tuple, ...]:
        addrs = []
        for s in self._servers:
            try:
                addrs.extend(sock.getsockname() for sock in s.sockets)
            except OSError:  # pragma: no cover
                pass
        return tuple(addrs)

    def active_connections(self) -> int:
        return len(self.connections)

    async def start(self) -> None:
        assert not self._servers
        host = self.options.listen_host
        port = self.options.listen_port
        try:
            self._servers = [await asyncio.start_server(self.handle_stream, host, port)]
        except OSError as e:
            message = f"Proxy server failed to listen on {host or '*'}:{port} with {e}"
            raise OSError(e.errno, message, e.filename) from e
        addrs = " and ".join({human.format_address(a) for a in self.listen_addrs})
        logger.info(f"Proxy server listening at {addrs}.")

    async def stop(self) -> None:
        """
        Stop accepting connections. Connections that are already established are not interrupted.
        """
        listen_addrs = self.listen_addrs
        try:
            for s in self._servers:
                s.close()
            # Server.wait_closed() would wait for all live connections to finish.
        finally:
            self._servers = []
        if listen_addrs:
            addrs = " and ".join({human.format_address(a) for a in listen_addrs})
            logger.info(f"Proxy server at {addrs} stopped.")
        else:
            logger.info("Proxy server stopped.")

    def to_json(self) -> dict:
        return {
            "is_running": self.is_running,
            "listen_addrs": self.listen_addrs,
            "active_connections": self.active_connections(),
        }

    @contextmanager
    def register_connection(
        self, connection_id: str, handler: ConnectionHandler
    ) -> Iterator[None]:
        self.connections[connection_id] = handler
        try:
            yield
        finally:
            del self.connections[connection_id]

    async def handle_stream(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        handler = ConnectionHandler(reader, writer, self.classifier, self.options)
        with self.register_connection(handler.id, handler):
            await handler.handle_client()
