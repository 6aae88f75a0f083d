import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence

from siteblock import exceptions
from siteblock import master
from siteblock import options
from siteblock import optmanager
from siteblock import version
from siteblock.tools import cmdline


def process_options(parser, opts, args):
    """Apply parsed command line flags to the options."""
    if args.version:
        print(version.get_dev_version())
        sys.exit(0)
    if args.quiet or args.options:
        # --options prints YAML, startup messages would only get in the way.
        opts.termlog_verbosity = "error"
    elif args.verbose:
        opts.termlog_verbosity = "debug"

    updates = {
        name: value
        for name, value in vars(args).items()
        if name in opts and value is not None
    }
    opts.update(**updates)


def fail(message) -> None:
    print(f"{sys.argv[0]}: {message}", file=sys.stderr)
    sys.exit(1)


def run(arguments: Sequence[str] | None) -> master.Master:  # pragma: no cover
    async def main() -> master.Master:
        logging.getLogger().setLevel(logging.DEBUG)
        for noisy in ("asyncio", "tornado"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        opts = options.Options()
        m = master.Master(opts, with_termlog=True)
        parser = cmdline.siteblock(opts)
        args = parser.parse_args(arguments)

        try:
            opts.set(*args.setoptions)
            confdir = os.path.expanduser(opts.confdir)
            optmanager.load_paths(
                opts,
                os.path.join(confdir, f"{options.CONF_BASENAME}.yaml"),
                os.path.join(confdir, f"{options.CONF_BASENAME}.yml"),
            )
            process_options(parser, opts, args)
        except exceptions.OptionsError as e:
            fail(e)

        if args.options:
            optmanager.dump_defaults(opts, sys.stdout)
            sys.exit(0)

        loop = asyncio.get_running_loop()

        def shutdown(*_):
            loop.call_soon_threadsafe(m.shutdown)

        # loop.add_signal_handler is not available on Windows.
        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)
        if hasattr(signal, "SIGPIPE"):
            signal.signal(signal.SIGPIPE, signal.SIG_IGN)

        try:
            await m.run()
        except OSError as e:
            fail(e)
        return m

    return asyncio.run(main())


def siteblock(args=None) -> int | None:  # pragma: no cover
    run(args)
    return None


if __name__ == "__main__":  # pragma: no cover
    siteblock()
