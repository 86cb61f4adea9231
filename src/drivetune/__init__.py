"""drivetune: a Google Drive music source for playback hosts."""

__version__ = "0.1.0"
