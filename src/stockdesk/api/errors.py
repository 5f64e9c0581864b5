class ProviderError(Exception):
    """A market-data provider could not deliver a usable payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
