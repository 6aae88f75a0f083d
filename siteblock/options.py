from collections.abc import Sequence
from typing import Optional

from siteblock import optmanager

CONF_DIR = "~/.siteblock"
CONF_BASENAME = "config"
LOG_VERBOSITY = ["error", "warn", "info", "debug"]


class Options(optmanager.OptManager):
    def __init__(self, **kwargs) -> None:
        super().__init__()

        # Proxy options
        self.add_option(
            "listen_host",
            str,
            "127.0.0.1",
            "Address to bind the proxy server to. Use an empty string to listen on all interfaces.",
        )
        self.add_option(
            "listen_port",
            int,
            8888,
            "Proxy service port. Use 0 to pick a free port.",
        )
        self.add_option(
            "connect_timeout",
            float,
            10,
            """
            Seconds to wait for a connection to the origin server. Use 0 to
            wait indefinitely.
            """,
        )
        self.add_option(
            "idle_timeout",
            int,
            600,
            """
            Close connections after this many seconds without traffic in either
            direction. Use 0 to keep idle connections open.
            """,
        )

        # Blocking
        self.add_option(
            "blocking",
            bool,
            True,
            """
            Enforce the blocking rules. When disabled, all traffic is relayed
            and the rules are kept.
            """,
        )
        self.add_option(
            "block_sites",
            Sequence[str],
            [],
            """
            Block a domain, optionally except for some paths. Either a plain
            domain ("example.com") or a list whose first character is the
            separator, e.g. "|example.com|/allowed|/other?x=1". A leading "www."
            is ignored. Setting this option replaces all existing rules.
            """,
        )

        # Control plane
        self.add_option(
            "control_host",
            str,
            "127.0.0.1",
            "Address to bind the control API to.",
        )
        self.add_option(
            "control_port",
            Optional[int],
            None,
            "Port of the HTTP control API. The control API is disabled if this is not set.",
        )

        self.add_option(
            "confdir",
            str,
            CONF_DIR,
            "Location of the default siteblock configuration files.",
        )
        self.add_option(
            "termlog_verbosity",
            str,
            "info",
            "Log verbosity.",
            choices=LOG_VERBOSITY,
        )

        self.update(**kwargs)
