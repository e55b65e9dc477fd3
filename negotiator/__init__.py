"""Negotiator AI - mediated two-party price negotiation service."""

__version__ = "0.1.0"
