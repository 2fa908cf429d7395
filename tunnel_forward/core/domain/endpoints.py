"""
Endpoint string parsing.

Splits ``[protocol://]host[:port]`` strings into their components and fills
in well-known default ports. Only hostnames and IPv4 literals are supported.
"""

from typing import Dict, NamedTuple, Optional, Tuple

from ..exceptions import ConfigurationError

DEFAULT_PROTOCOL = "http"
PROTOCOL_SEPARATOR = "://"

DEFAULT_PROTOCOL_PORTS: Dict[str, int] = {
    "http": 80,
    "https": 443,
}


class Endpoint(NamedTuple):
    """A parsed endpoint."""
    protocol: str
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def to_uri(self) -> str:
        return f"{self.protocol}{PROTOCOL_SEPARATOR}{self.address}"


def split_tunneled_protocol(endpoint: str) -> Tuple[str, str]:
    """
    Split the carried protocol off an endpoint string.

    Examples:
        https://10.10.10.10:8888 -> ("https", "10.10.10.10:8888")
        10.10.10.10:8888 -> ("http", "10.10.10.10:8888")
    """
    protocol, separator, rest = endpoint.strip().partition(PROTOCOL_SEPARATOR)
    if not separator:
        return DEFAULT_PROTOCOL, protocol
    return (protocol.lower() or DEFAULT_PROTOCOL), rest


def split_addr_and_port(
    addr_and_port: str,
    protocol: str,
    default_port: Optional[int] = None
) -> Tuple[str, int]:
    """
    Split ``host[:port]`` into host and integer port.

    Args:
        addr_and_port: Host with optional port suffix
        protocol: Protocol used to look up the default port
        default_port: Port to use instead of the table when none is given

    Returns:
        Tuple of (host, port)

    Raises:
        ConfigurationError: If the host is empty, the port is empty or not a
            number, or no default port is known for the protocol
    """
    parts = addr_and_port.split(":")
    if len(parts) > 2:
        raise ConfigurationError(f"invalid endpoint provided: {addr_and_port}")

    addr = parts[0]
    if len(parts) == 1:
        if default_port is None:
            default_port = DEFAULT_PROTOCOL_PORTS.get(protocol.lower())
        if default_port is None:
            raise ConfigurationError(
                f"could not get default port for protocol {protocol}")
        port_str = str(default_port)
    else:
        port_str = parts[1]

    if not addr:
        raise ConfigurationError("empty address/hostname provided")
    if not port_str:
        raise ConfigurationError("empty port provided")

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigurationError(
            f"invalid endpoint provided: {addr_and_port}") from None

    if not (1 <= port <= 65535):
        raise ConfigurationError(
            f"port must be between 1 and 65535, got {port}")

    return addr, port


def parse_endpoint(endpoint: str) -> Endpoint:
    """
    Parse ``[protocol://]host[:port]`` into an Endpoint.

    A missing protocol is reported as ``http``.
    """
    protocol, addr_and_port = split_tunneled_protocol(endpoint)
    host, port = split_addr_and_port(addr_and_port, protocol)
    return Endpoint(protocol, host, port)
