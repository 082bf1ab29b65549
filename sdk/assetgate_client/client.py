"""
Python client for the upload API: request a presigned POST grant, upload a file straight
to the object store, then verify / fetch a download URL / delete.
Uploads retry with exponential backoff.
"""
import mimetypes
import time
from pathlib import Path
from typing import Any

import httpx


class AssetGateError(Exception):
    """Non-2xx response from the upload API; message is the server's `error` field."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class AssetGateClient:
    """Client for the single-endpoint upload API (POST {api_path} with an action)."""

    def __init__(self, base_url: str, api_path: str = "/api/upload", headers: dict[str, str] | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_path = api_path
        self.headers = headers or {}
        self._session: httpx.Client | None = None

    def _get_session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                base_url=self.base_url,
                timeout=60.0,
                follow_redirects=True,
                headers=self.headers,
            )
        return self._session

    def _action(self, action: str, args: Any) -> Any:
        r = self._get_session().post(self.api_path, json={"action": action, "args": args})
        if r.is_error:
            try:
                message = r.json().get("error") or r.text
            except ValueError:
                message = r.text
            raise AssetGateError(r.status_code, message)
        return r.json()

    def generate_presigned(
        self,
        file_type: str,
        name: str | None = None,
        upload_type: str | None = None,
        asset_id: str | None = None,
        metadata: dict | None = None,
    ) -> dict:
        """Request an upload grant. Returns { id, url, data, path? }."""
        args: dict[str, Any] = {"fileType": file_type}
        if name is not None:
            args["name"] = name
        if upload_type is not None:
            args["uploadType"] = upload_type
        if asset_id is not None:
            args["id"] = asset_id
        if metadata:
            args["metadata"] = metadata
        return self._action("generatePresignedPostPolicy", args)

    def upload(
        self,
        path: str | Path,
        upload_type: str | None = None,
        asset_id: str | None = None,
        metadata: dict | None = None,
        verify: bool = False,
    ) -> dict:
        """Grant + POST the file to the presigned form. Returns the grant."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        content_type = mimetypes.guess_type(str(path))[0] or "application/octet-stream"
        grant = self.generate_presigned(
            content_type,
            name=path.name,
            upload_type=upload_type,
            asset_id=asset_id,
            metadata=metadata,
        )
        self._post_file_with_retry(grant["url"], grant["data"], path, content_type)
        if verify:
            self.verify([grant["id"]])
        return grant

    def _post_file_with_retry(
        self,
        upload_url: str,
        fields: dict[str, str],
        path: Path,
        content_type: str,
        max_retries: int = 5,
    ) -> None:
        body = path.read_bytes()
        for attempt in range(max_retries):
            try:
                # Form fields must precede the file part in an S3 POST upload
                r = httpx.post(
                    upload_url,
                    data=fields,
                    files={"file": (path.name, body, content_type)},
                    timeout=300.0,
                )
                r.raise_for_status()
                return
            except httpx.HTTPStatusError as e:
                # Policy violations (size, content type, expired) will not succeed on retry
                if e.response.status_code < 500 or attempt == max_retries - 1:
                    raise
            except httpx.TransportError:
                if attempt == max_retries - 1:
                    raise
            backoff = (2**attempt) + (time.time() % 1)  # exponential backoff + jitter
            time.sleep(backoff)

    def verify(self, asset_ids: list[str]) -> list[dict]:
        return self._action("verifyAsset", [{"id": i} for i in asset_ids])

    def get_url(self, asset_ids: list[str]) -> list[dict]:
        """Presigned download URLs: [{ id, url, metadata? }]."""
        return self._action("getPresignedUrl", [{"id": i} for i in asset_ids])

    def get_asset(self, asset_ids: list[str]) -> list[dict]:
        return self._action("getAsset", [{"id": i} for i in asset_ids])

    def delete(self, asset_ids: list[str]) -> list[dict]:
        return self._action("deleteAsset", [{"id": i} for i in asset_ids])

    def close(self) -> None:
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "AssetGateClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
