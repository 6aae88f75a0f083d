import pytest

from siteblock.utils import human


@pytest.mark.parametrize(
    "address, expected",
    [
        (("127.0.0.1", 8080), "127.0.0.1:8080"),
        (("::1", 8080, 0, 0), "[::1]:8080"),
        (("::ffff:127.0.0.1", 8080, 0, 0), "127.0.0.1:8080"),
        (("0.0.0.0", 8888), "*:8888"),
        (("::", 8888, 0, 0), "*:8888"),
        (("example.com", 80), "example.com:80"),
        (None, "<no address>"),
    ],
)
def test_format_address(address, expected):
    assert human.format_address(address) == expected
