"""Request/response channel to the remote-mail helper process."""

from .channel import ProxyChannel, ProxyCommand, UnixSocketProxyChannel, build_command

__all__ = ["ProxyChannel", "ProxyCommand", "UnixSocketProxyChannel", "build_command"]
