"""Samsung air conditioner NASA protocol codec, RS485 bridge, HTTP API and server."""

__version__ = "1.0.0"
__all__ = ["api", "bridge", "packet", "processing", "server"]