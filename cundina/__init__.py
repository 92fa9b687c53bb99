"""Cundina on-chain membership orchestrator."""

__version__ = "0.1.0"
