"""Telephony media stream to realtime AI session bridge."""

__version__ = "0.1.0"
