import ipaddress
import re

# Letters, digits, "-" and "_". Underscores are not valid in host names, but
# they show up in real-world DNS labels often enough.
_label_valid = re.compile(rb"[A-Z\d\-_]{1,63}", re.IGNORECASE)


def is_valid_host(host: str) -> bool:
    """
    True if host is an IPv4/IPv6 address or a DNS name.
    Internationalized names are checked in their IDNA form.
    """
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return True
    try:
        encoded = host.encode("idna")
        # Catches malformed punycode such as "xn--ke".
        encoded.decode("idna")
    except UnicodeError:
        return False
    # RFC1035: 255 bytes or less.
    if not encoded or len(encoded) > 255:
        return False
    if encoded.endswith(b"."):
        encoded = encoded[:-1]
    return all(_label_valid.fullmatch(label) for label in encoded.split(b"."))


def is_valid_port(port: int) -> bool:
    return 0 <= port <= 65535
