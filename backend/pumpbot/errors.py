"""Exceptions raised by the agent and its external collaborators."""

from typing import Any


class PumpBotError(Exception):
    """Base class for agent errors."""


class ConfigurationError(PumpBotError):
    """Required configuration is missing or invalid. Fatal at startup."""


class ExternalServiceError(PumpBotError):
    """A collaborator (RPC node, price feed, swap API) failed or returned garbage."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class TransactionFetchError(ExternalServiceError):
    """Transaction details could not be fetched within the retry budget."""
