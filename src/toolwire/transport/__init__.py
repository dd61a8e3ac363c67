"""Process transport for stdio tool providers."""

from toolwire.transport.process import ProcessTransport

__all__ = ["ProcessTransport"]
