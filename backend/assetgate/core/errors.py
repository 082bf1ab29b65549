"""Caller-visible failures of the asset lifecycle. Each carries the HTTP status the adapter maps it to."""


class AssetGateError(Exception):
    """Base for request validation, configuration and not-found conditions. Never retried."""

    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return self.__class__.__name__


class MissingFileType(AssetGateError):
    status_code = 400

    def default_message(self) -> str:
        return "fileType is required"


class UnknownUploadType(AssetGateError):
    status_code = 400

    def __init__(self, upload_type: str) -> None:
        self.upload_type = upload_type
        super().__init__(f'Upload type "{upload_type}" not configured')


class AlreadyExists(AssetGateError):
    status_code = 409

    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} already exists")


class StoreRequired(AssetGateError):
    """A store-backed feature was requested without a configured metadata store (configuration error)."""

    status_code = 500

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"A metadata store is required for {feature}")


class AssetNotFound(AssetGateError):
    status_code = 404

    def __init__(self, asset_id: str | None = None, message: str | None = None) -> None:
        self.asset_id = asset_id
        super().__init__(message or f"Asset {asset_id} not found")


class AssetExpired(AssetNotFound):
    """Provisional record whose verification window elapsed; the record has been deleted."""

    def __init__(self, asset_id: str) -> None:
        super().__init__(asset_id, f"Asset {asset_id} expired and was deleted")


class ObjectNotFound(AssetGateError):
    status_code = 404

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Object not found: {path}")
