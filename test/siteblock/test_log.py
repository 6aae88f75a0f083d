import builtins
import io
import logging

import pytest

from siteblock import log
from siteblock import options


@pytest.fixture(autouse=True)
def ensure_cleanup():
    yield
    assert not any(isinstance(x, log.TermLogHandler) for x in logging.root.handlers)


class TTY(io.StringIO):
    def isatty(self):
        return True


def record(msg, level=logging.INFO, **extra):
    r = logging.LogRecord("siteblock", level, __file__, 1, msg, None, None)
    r.__dict__.update(extra)
    return r


def test_formatter():
    f = log.SiteblockFormatter(colorize=False)
    assert f.format(record("hello")).endswith("] hello")
    out = f.format(record("hello", client=("127.0.0.1", 4242)))
    assert out.endswith("][127.0.0.1:4242] hello")
    assert out.startswith("[")


def test_formatter_exc_info():
    f = log.SiteblockFormatter(colorize=False)
    try:
        raise ValueError("boom")
    except ValueError as e:
        r = record("failed", level=logging.ERROR)
        r.exc_info = (type(e), e, e.__traceback__)
    out = f.format(r)
    assert "failed\nTraceback" in out
    assert "ValueError: boom" in out


def test_output(capsys):
    logging.getLogger().setLevel(logging.DEBUG)
    opts = options.Options()
    t = log.TermLog(opts)
    logging.info("one")
    logging.debug("two")
    logging.warning("three")
    logging.error("four")
    opts.termlog_verbosity = "debug"
    logging.debug("five")
    opts.termlog_verbosity = "error"
    logging.warning("six")
    t.uninstall()
    out, err = capsys.readouterr()
    assert "one" in out
    assert "two" not in out
    assert "three" in out
    assert "four" in out
    assert "five" in out
    assert "six" not in out


def test_styling():
    logging.getLogger().setLevel(logging.DEBUG)
    f = TTY()
    t = log.TermLog(options.Options(), out=f)
    logging.warning("hello")
    logging.info("plain", extra={"client": ("127.0.0.1", 4242)})
    t.uninstall()
    assert "\x1b[33mhello\x1b[0m" in f.getvalue()
    assert "127.0.0.1:4242" in f.getvalue()


def test_no_styling_without_tty():
    logging.getLogger().setLevel(logging.DEBUG)
    f = io.StringIO()
    t = log.TermLog(options.Options(), out=f)
    logging.warning("hello")
    t.uninstall()
    assert "\x1b[" not in f.getvalue()
    assert "hello" in f.getvalue()


def test_cannot_print(monkeypatch):
    def _raise(*args, **kwargs):
        raise OSError

    monkeypatch.setattr(builtins, "print", _raise)

    t = log.TermLog(options.Options())
    with pytest.raises(SystemExit) as exc_info:
        logging.info("Should not log this, but raise instead")
    assert exc_info.value.args[0] == 1
    t.uninstall()


def test_handler_of_other_test_is_replaced(monkeypatch):
    monkeypatch.setenv("PYTEST_CURRENT_TEST", "some other test")
    stale = log.TermLogHandler(io.StringIO())
    stale.install()
    monkeypatch.undo()

    t = log.TermLog(options.Options())
    assert stale not in logging.root.handlers
    t.uninstall()
