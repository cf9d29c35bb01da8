from __future__ import annotations


class LpWatchError(Exception):
    pass


class ConfigError(LpWatchError):
    """Startup configuration that the process cannot run without."""


class MetadataError(LpWatchError):
    def __init__(self, mint, message: str):
        super().__init__(message)
        self.mint = mint

    def __str__(self) -> str:
        return f"{self.args[0]} (mint {self.mint})"


class RpcError(MetadataError):
    pass


class DeserializationError(MetadataError):
    pass


class DeliveryError(LpWatchError):
    pass


class DecodeError(LpWatchError):
    pass
