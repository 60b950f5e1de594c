"""GitHub repository contents store.

GitHub REST API:
GET /repos/{owner}/{repo}/contents/{path}?ref={branch}
PUT /repos/{owner}/{repo}/contents/{path}
Authorization: Bearer ghp_xxx

The blob ``sha`` of a file is used as its version token. PUT without ``sha``
only succeeds if the file does not exist; PUT with a stale ``sha`` is
rejected with 409.
"""

import base64
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from alertfiles.models.remote import CommitMetadata, RemoteFile, Repo
from alertfiles.stores.base import BaseStore, ConflictError, NotFoundError, RemoteStoreError

logger = logging.getLogger(__name__)

# sha does not match the stored file
CONFLICT_STATUS_CODE = 409
# Also returned for other validation failures (bad branch, bad path)
UNPROCESSABLE_STATUS_CODE = 422


def _is_conflict(resp: httpx.Response, version: Optional[str]) -> bool:
    """Whether a failed PUT means the file changed under us.

    A create of a file that already exists is answered with 422 and a
    message about the missing ``sha``.
    """
    if resp.status_code == CONFLICT_STATUS_CODE:
        return True
    return (
        resp.status_code == UNPROCESSABLE_STATUS_CODE
        and version is None
        and "sha" in resp.text
    )


class GitHubStore(BaseStore):
    """Remote store backed by the GitHub contents API."""

    def __init__(
        self,
        repo: Repo,
        *,
        token: str = "",
        branch: str = "",
        api_url: str = "https://api.github.com",
        timeout_s: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._repo = repo
        self._branch = branch
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return f"github:{self._repo.full_name}"

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self._repo.owner}/{self._repo.name}/contents/{quote(path.lstrip('/'))}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, self._contents_url(path), **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteStoreError(f"GitHub {method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"GitHub {method} {path} failed: {e}") from e

    async def get(self, path: str) -> RemoteFile:
        params = {"ref": self._branch} if self._branch else None
        resp = await self._request("GET", path, params=params)

        if resp.status_code == 404:
            raise NotFoundError(f"File not found: {path}")
        if resp.status_code >= 400:
            logger.error(
                "GitHub API error: method=GET path=%s status=%s body=%s",
                path,
                resp.status_code,
                resp.text,
            )
            raise RemoteStoreError(f"GitHub GET {path} returned {resp.status_code}")

        data = resp.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            raise RemoteStoreError(f"Path is not a file: {path}")

        encoded = data.get("content") or ""
        if data.get("encoding", "base64") != "base64":
            raise RemoteStoreError(f"Unsupported content encoding for {path}: {data.get('encoding')}")
        content = base64.b64decode(encoded)
        return RemoteFile(path=path, content=content, version=data.get("sha"))

    async def create_or_update(
        self,
        path: str,
        content: bytes,
        version: Optional[str],
        metadata: CommitMetadata,
    ) -> Optional[str]:
        body: dict[str, Any] = {
            "message": metadata.message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        branch = metadata.branch or self._branch
        if branch:
            body["branch"] = branch
        if metadata.author_name and metadata.author_email:
            body["committer"] = {"name": metadata.author_name, "email": metadata.author_email}
        if version is not None:
            body["sha"] = version

        resp = await self._request("PUT", path, json=body)

        if _is_conflict(resp, version):
            mode = "update" if version is not None else "create"
            raise ConflictError(f"Conflicting {mode} of {path}: {resp.status_code} {resp.text}")
        if resp.status_code >= 400:
            logger.error(
                "GitHub API error: method=PUT path=%s status=%s body=%s",
                path,
                resp.status_code,
                resp.text,
            )
            raise RemoteStoreError(f"GitHub PUT {path} returned {resp.status_code}")

        data = resp.json()
        new_version = (data.get("content") or {}).get("sha")
        logger.info(f"Wrote {path} to {self._repo.full_name} (sha: {new_version})")
        return new_version

    async def close(self) -> None:
        await self._client.aclose()
