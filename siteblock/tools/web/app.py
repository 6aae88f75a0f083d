from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import tornado.escape
import tornado.web

from siteblock import exceptions
from siteblock import optmanager
from siteblock import version

if TYPE_CHECKING:
    from siteblock.master import Master

logger = logging.getLogger(__name__)


class APIError(tornado.web.HTTPError):
    """An error with a plain text message for the API client."""


class RequestHandler(tornado.web.RequestHandler):
    application: Application

    def set_default_headers(self):
        super().set_default_headers()
        self.set_header("Server", version.SITEBLOCK)
        self.set_header("X-Content-Type-Options", "nosniff")

    def write(self, chunk: str | bytes | dict | list):
        # tornado only serializes dicts itself.
        if isinstance(chunk, list):
            self.set_header("Content-Type", "application/json; charset=UTF-8")
            chunk = tornado.escape.json_encode(chunk)
        super().write(chunk)

    @property
    def json(self):
        content_type = self.request.headers.get("Content-Type", "")
        if content_type.split(";")[0].strip() != "application/json":
            raise APIError(400, "Invalid Content-Type, expected application/json.")
        try:
            return tornado.escape.json_decode(self.request.body)
        except ValueError as e:
            raise APIError(400, f"Malformed JSON: {e}")

    def json_object(self) -> dict:
        data = self.json
        if not isinstance(data, dict):
            raise APIError(400, "Expected a JSON object.")
        return data

    @property
    def master(self) -> Master:
        return self.application.master

    def write_error(self, status_code: int, **kwargs):
        exc = kwargs.get("exc_info", (None, None, None))[1]
        if isinstance(exc, APIError):
            self.finish(exc.log_message)
        else:
            super().write_error(status_code, **kwargs)


class Status(RequestHandler):
    def get(self):
        self.write(self.master.status())


class Activate(RequestHandler):
    def post(self):
        self.master.options.blocking = True
        logger.info("Blocking activated.")
        self.write(self.master.status())


class Deactivate(RequestHandler):
    def post(self):
        self.master.options.blocking = False
        logger.info("Blocking deactivated.")
        self.write(self.master.status())


class Sites(RequestHandler):
    def get(self):
        self.write([r.to_json() for r in self.master.registry.rules()])

    def delete(self):
        self.master.registry.clear()
        logger.info("All site rules removed.")
        self.set_status(204)


class Site(RequestHandler):
    def get(self, domain):
        rule = self.master.registry.lookup(domain)
        if rule is None:
            raise APIError(404, f"Unknown site: {domain}")
        self.write(rule.to_json())

    def put(self, domain):
        data = self.json_object()
        whitelist = data.get("whitelist", [])
        if not isinstance(whitelist, list) or not all(
            isinstance(p, str) and p for p in whitelist
        ):
            raise APIError(400, "whitelist must be a list of non-empty strings.")
        try:
            rule = self.master.registry.register(domain, whitelist)
        except ValueError as e:
            raise APIError(400, str(e))
        logger.info(f"Blocking {rule.domain} (whitelist: {whitelist})")
        self.write(rule.to_json())


class EnableSite(RequestHandler):
    def post(self, domain):
        try:
            rule = self.master.registry.enable(domain)
        except KeyError:
            raise APIError(404, f"Unknown site: {domain}")
        self.write(rule.to_json())


class DisableSite(RequestHandler):
    def post(self, domain):
        try:
            rule = self.master.registry.disable(domain)
        except KeyError:
            raise APIError(404, f"Unknown site: {domain}")
        self.write(rule.to_json())


class Options(RequestHandler):
    def get(self):
        self.write(optmanager.dump_dicts(self.master.options))

    def put(self):
        update = self.json_object()
        try:
            self.master.options.update(**update)
        except exceptions.OptionsError as e:
            raise APIError(400, f"{e}")
        except KeyError as e:
            raise APIError(400, f"{e.args[0]}")
        self.write(optmanager.dump_dicts(self.master.options, update.keys()))


handlers = [
    (r"/status(?:\.json)?", Status),
    (r"/activate", Activate),
    (r"/deactivate", Deactivate),
    (r"/sites(?:\.json)?", Sites),
    (r"/sites/(?P<domain>[^/]+)", Site),
    (r"/sites/(?P<domain>[^/]+)/enable", EnableSite),
    (r"/sites/(?P<domain>[^/]+)/disable", DisableSite),
    (r"/options(?:\.json)?", Options),
]  # fmt: skip


class Application(tornado.web.Application):
    master: Master

    def __init__(self, master: Master, debug: bool = False) -> None:
        self.master = master
        super().__init__(
            handlers=handlers,  # type: ignore  # https://github.com/tornadoweb/tornado/pull/3455
            debug=debug,
            autoreload=False,
        )
