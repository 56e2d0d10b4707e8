"""OAuth 2.0 Device Authorization Grant (RFC 8628)."""

__version__ = '0.1.0'
