"""Claim Organizer - groups scanned medical documents into claim folders."""

__version__ = "0.1.0"
