import pytest

from siteblock import exceptions
from siteblock import options


def test_simple():
    assert options.Options()


def test_defaults():
    opts = options.Options()
    assert opts.listen_host == "127.0.0.1"
    assert opts.listen_port == 8888
    assert opts.blocking is True
    assert opts.block_sites == []
    assert opts.control_port is None
    assert opts.idle_timeout == 600
    assert opts.connect_timeout == 10


def test_settable():
    opts = options.Options(listen_port=0, connect_timeout=0.5, control_port=8081)
    assert opts.listen_port == 0
    assert opts.connect_timeout == 0.5
    assert opts.control_port == 8081


def test_termlog_verbosity():
    opts = options.Options()
    opts.termlog_verbosity = "debug"
    with pytest.raises(exceptions.OptionsError):
        opts.termlog_verbosity = "loud"
    assert opts.termlog_verbosity == "debug"
