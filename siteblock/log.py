from __future__ import annotations

import logging
import os
import sys
from typing import IO

import click

from siteblock import options as soptions
from siteblock.utils import human

LOG_COLORS = {logging.ERROR: "red", logging.WARNING: "yellow"}


def _current_test() -> str | None:
    return os.environ.get("PYTEST_CURRENT_TEST")


class SiteblockFormatter(logging.Formatter):
    """
    Formats records as `[time][client] message`. The client part is only
    present for records logged with `extra={"client": address}`.
    """

    default_time_format = "%H:%M:%S"
    default_msec_format = "%s.%03d"

    def __init__(self, colorize: bool):
        super().__init__()
        self.colorize = colorize

    def _bracket(self, text: str, color: str) -> str:
        if self.colorize:
            return click.style(f"[{text}]", fg=color, dim=True)
        return f"[{text}]"

    def format(self, record: logging.LogRecord) -> str:
        parts = [self._bracket(self.formatTime(record), "cyan")]
        client = getattr(record, "client", None)
        if client:
            parts.append(self._bracket(human.format_address(client), "yellow"))

        message = record.getMessage()
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        if self.colorize:
            message = click.style(message, fg=LOG_COLORS.get(record.levelno))
        return "".join(parts) + " " + message


class SiteblockLogHandler(logging.Handler):
    """
    A root logger handler that can be installed and removed again.

    A handler created while a test runs only passes records of that test,
    and installing it evicts handlers left behind by earlier tests.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.test_id = _current_test()

    def filter(self, record: logging.LogRecord) -> bool:
        if self.test_id and self.test_id != _current_test():
            return False
        return bool(super().filter(record))

    def install(self) -> None:
        root = logging.getLogger()
        if self.test_id:
            stale = [
                h
                for h in root.handlers
                if isinstance(h, SiteblockLogHandler) and h.test_id != self.test_id
            ]
            for h in stale:
                h.uninstall()
        root.addHandler(self)

    def uninstall(self) -> None:
        logging.getLogger().removeHandler(self)


class TermLogHandler(SiteblockLogHandler):
    def __init__(self, out: IO[str] | None = None):
        super().__init__()
        self.file: IO[str] = out or sys.stdout
        self.setFormatter(SiteblockFormatter(colorize=self.file.isatty()))

    def emit(self, record: logging.LogRecord) -> None:
        line = self.format(record)
        try:
            print(line, file=self.file)
        except OSError:
            # stdout is gone.
            sys.exit(1)


class TermLog:
    """Prints log records to the terminal, at the level set by `termlog_verbosity`."""

    def __init__(self, options: soptions.Options, out: IO[str] | None = None):
        self.handler = TermLogHandler(out)
        self.configure(options, {"termlog_verbosity"})
        self.handler.install()
        options.subscribe(self.configure, ["termlog_verbosity"])

    def configure(self, options: soptions.Options, updated: set[str]) -> None:
        self.handler.setLevel(options.termlog_verbosity.upper())

    def uninstall(self) -> None:
        self.handler.uninstall()
