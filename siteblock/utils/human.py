import functools
import ipaddress


@functools.lru_cache
def format_address(address: tuple | None) -> str:
    """
    Format an IPv4/IPv6 socket address as `host:port`.
    IPv6 hosts are bracketed, IPv4-mapped IPv6 addresses are shown as IPv4
    and unspecified addresses as `*`.
    """
    if address is None:
        return "<no address>"
    try:
        host = ipaddress.ip_address(address[0])
    except ValueError:
        return f"{address[0]}:{address[1]}"
    if host.is_unspecified:
        return f"*:{address[1]}"
    if isinstance(host, ipaddress.IPv6Address):
        if host.ipv4_mapped:
            return f"{host.ipv4_mapped}:{address[1]}"
        return f"[{host}]:{address[1]}"
    return f"{host}:{address[1]}"
