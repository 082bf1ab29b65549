from .client import AssetGateClient, AssetGateError

__all__ = ["AssetGateClient", "AssetGateError"]
