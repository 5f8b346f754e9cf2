from __future__ import annotations


class ProviderError(Exception):
    """An external provider failed or returned an unusable response."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")
