"""Passive sniffer and decoder for Mitsubishi M-NET HVAC bus traffic."""

__version__ = "1.2.0"
