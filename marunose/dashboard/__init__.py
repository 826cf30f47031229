"""Localhost-only dashboard API: key management and the security event feed."""
