"""Marunose gateway: API key issuance, quota gate and GitHub summarization."""

__version__ = "1.0.0"
