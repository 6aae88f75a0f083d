import argparse

import pytest

from siteblock import options
from siteblock import version
from siteblock.tools import cmdline
from siteblock.tools import main


def test_common():
    parser = argparse.ArgumentParser()
    opts = options.Options()
    cmdline.common_options(parser, opts)
    args = parser.parse_args(args=[])
    main.process_options(parser, opts, args)
    assert not any(opts.has_changed(k) for k in opts.keys())


def test_siteblock():
    opts = options.Options()
    ap = cmdline.siteblock(opts)
    args = ap.parse_args(
        [
            "-p",
            "0",
            "--no-blocking",
            "-B",
            "example.com",
            "-B",
            "|youtube.com|/feed",
            "--connect-timeout",
            "2.5",
            "--control-port",
            "8081",
            "--set",
            "idle_timeout=5",
        ]
    )
    assert args.setoptions == ["idle_timeout=5"]
    main.process_options(ap, opts, args)
    assert opts.listen_port == 0
    assert opts.blocking is False
    assert opts.block_sites == ["example.com", "|youtube.com|/feed"]
    assert opts.connect_timeout == 2.5
    assert opts.control_port == 8081


@pytest.mark.parametrize(
    "flag, verbosity",
    [
        ("-q", "error"),
        ("-v", "debug"),
        ("--options", "error"),
    ],
)
def test_verbosity(flag, verbosity):
    opts = options.Options()
    ap = cmdline.siteblock(opts)
    main.process_options(ap, opts, ap.parse_args([flag]))
    assert opts.termlog_verbosity == verbosity


def test_version(capsys):
    opts = options.Options()
    ap = cmdline.siteblock(opts)
    with pytest.raises(SystemExit) as exc_info:
        main.process_options(ap, opts, ap.parse_args(["--version"]))
    assert exc_info.value.code == 0
    assert version.VERSION in capsys.readouterr().out
