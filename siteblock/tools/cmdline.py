import argparse


def common_options(parser, opts):
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    parser.add_argument(
        "--options",
        action="store_true",
        help="Print all options with their defaults as YAML and exit.",
    )
    parser.add_argument(
        "--set",
        dest="setoptions",
        action="append",
        default=[],
        metavar="option[=value]",
        help="""
            Set any option, see --options for the full list. Without a value,
            booleans are switched on and optional values are cleared. Repeat
            the flag to set several values of a sequence option.
        """,
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log errors."
    )
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages."
    )

    group = parser.add_argument_group("Proxy")
    opts.make_parser(group, "listen_host", metavar="HOST")
    opts.make_parser(group, "listen_port", metavar="PORT", short="p")
    opts.make_parser(group, "connect_timeout", metavar="SECONDS")
    opts.make_parser(group, "idle_timeout", metavar="SECONDS")

    group = parser.add_argument_group("Blocking")
    opts.make_parser(group, "blocking")
    opts.make_parser(group, "block_sites", metavar="SPEC", short="B")

    group = parser.add_argument_group("Control API")
    opts.make_parser(group, "control_host", metavar="HOST")
    opts.make_parser(group, "control_port", metavar="PORT")


def siteblock(opts):
    parser = argparse.ArgumentParser(
        usage="%(prog)s [options]",
        description="A local forward proxy that blocks sites by domain.",
    )
    common_options(parser, opts)
    return parser
