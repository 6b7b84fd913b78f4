"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from app.integrations.openrouter import (
    CompletionResult,
    OpenRouterClient,
    close_openrouter,
    get_openrouter,
    init_openrouter,
)

__all__ = [
    "CompletionResult",
    "OpenRouterClient",
    "close_openrouter",
    "get_openrouter",
    "init_openrouter",
]
