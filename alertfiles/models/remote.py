"""Remote repository models - target coordinates, files and commit metadata."""

from typing import Optional

from pydantic import BaseModel


class Repo(BaseModel):
    """Target repository and base directory for generated files."""

    owner: str
    name: str
    dir: str = ""

    @classmethod
    def parse(cls, full_name: str, dir: str = "") -> "Repo":
        """Parse an ``owner/name`` repository string."""
        parts = full_name.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Repository must be in 'owner/name' form, got: {full_name!r}")
        return cls(owner=parts[0], name=parts[1], dir=dir)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RemoteFile(BaseModel):
    """A file in the remote store.

    ``version`` is the store's revision token for the content (the blob sha on
    GitHub). It is None when the file does not exist yet.
    """

    path: str
    content: bytes = b""
    version: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.version is not None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class CommitMetadata(BaseModel):
    """Commit details forwarded to the store on every write."""

    message: str
    branch: str = ""
    author_name: str = ""
    author_email: str = ""
