"""Passkey authentication backed by an external verification service"""

__version__ = "1.0.0"
