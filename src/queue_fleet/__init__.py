"""Run a fleet of queue workers with labeled output and graceful shutdown."""

__version__ = "1.0.0"
