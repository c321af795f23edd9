"""Batch git / dependency operations across the microservice checkouts."""

__version__ = "1.0.0"
