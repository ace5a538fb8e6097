"""Multi-participant meeting scheduling over Google Calendar."""

__version__ = "0.1.0"
