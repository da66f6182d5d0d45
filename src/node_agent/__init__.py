"""Node agent - reconciles files and systemd units on a single node."""

__version__ = "0.1.0"
