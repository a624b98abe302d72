"""YaYa Wallet webhook receiver."""

__version__ = "1.0.0"
