import asyncio
import errno
import logging

import tornado.httpserver
import tornado.ioloop

from siteblock import exceptions
from siteblock import log
from siteblock import options
from siteblock import rules
from siteblock import version
from siteblock.classify import Classifier
from siteblock.proxy.server import ProxyServer
from siteblock.utils import asyncio_utils

logger = logging.getLogger(__name__)


class Master:
    """
    The master owns the options, the rule registry and the proxy server, and
    runs them until shutdown() is called.
    """

    event_loop: asyncio.AbstractEventLoop
    _termlog: log.TermLog | None = None

    def __init__(
        self,
        opts: options.Options | None,
        event_loop: asyncio.AbstractEventLoop | None = None,
        with_termlog: bool = False,
    ):
        self.options: options.Options = opts or options.Options()
        self.registry = rules.RuleRegistry()
        self.classifier = Classifier(self.registry)
        self.server = ProxyServer(self.options, self.classifier)
        self.control_server: tornado.httpserver.HTTPServer | None = None

        if with_termlog:
            self._termlog = log.TermLog(self.options)

        self.load_sites(self.options.block_sites)
        self.options.subscribe(self.configure, ["block_sites"])

        self.event_loop = event_loop or asyncio.get_running_loop()
        self.should_exit = asyncio.Event()

    def configure(self, opts: options.Options, updated: set[str]) -> None:
        if "block_sites" in updated:
            self.load_sites(opts.block_sites)

    def load_sites(self, specs: list[str]) -> None:
        """
        Replace all rules with the given site specifications.

        *Raises:*
         - OptionsError, if a specification is invalid. The registry is left untouched.
        """
        sites = []
        for spec in specs:
            try:
                sites.append(rules.parse_site_spec(spec))
            except ValueError as e:
                raise exceptions.OptionsError(f"Cannot parse block_sites entry: {e}")
        try:
            self.registry.replace(sites)
        except ValueError as e:
            raise exceptions.OptionsError(f"Invalid block_sites entry: {e}")

    async def run(self) -> None:
        with asyncio_utils.install_exception_handler(self._asyncio_exception_handler):
            self.should_exit.clear()
            await self.server.start()
            try:
                if self.options.control_port is not None:
                    self.start_control()
                await self.should_exit.wait()
            finally:
                # .wait might be cancelled (e.g. by sys.exit), so this needs to be in a finally block.
                await self.done()

    def start_control(self) -> None:
        from siteblock.tools.web import app

        # Register tornado with the current event loop
        tornado.ioloop.IOLoop.current()

        host = self.options.control_host
        port = self.options.control_port
        http_server = tornado.httpserver.HTTPServer(app.Application(self))
        try:
            http_server.listen(port, host)
        except OSError as e:
            message = f"Control API failed to listen on {host or '*'}:{port} with {e}"
            if e.errno == errno.EADDRINUSE:
                message += f"\nTry specifying a different port by using `--set control_port={port + 2}`."
            raise OSError(e.errno, message, e.filename) from e
        self.control_server = http_server
        logger.info(f"Control API listening at http://{host or '*'}:{port}/")

    def shutdown(self):
        """
        Shut down the proxy. This method is thread-safe.
        """
        self.event_loop.call_soon_threadsafe(self.should_exit.set)

    async def done(self) -> None:
        if self.control_server is not None:
            self.control_server.stop()
            self.control_server = None
        if self.server.is_running:
            await self.server.stop()
        if self._termlog is not None:
            self._termlog.uninstall()

    def status(self) -> dict:
        return {
            "version": version.VERSION,
            "blocking": self.options.blocking,
            "server": self.server.to_json(),
            "sites": [r.to_json() for r in self.registry.rules()],
        }

    def _asyncio_exception_handler(self, loop, context) -> None:
        try:
            exc: Exception = context["exception"]
        except KeyError:
            logger.error(f"Unhandled asyncio error: {context}")
        else:
            logger.error(
                "Unhandled error in task.",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
