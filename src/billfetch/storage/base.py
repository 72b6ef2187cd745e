"""Hierarchical remote storage abstraction."""

from abc import ABC, abstractmethod


class RemoteStorage(ABC):
    """Abstract interface for folder based file storage."""

    @abstractmethod
    def ensure_folder(self, parent_id: str, name: str) -> str:
        """Find or create a folder inside a parent folder.

        Args:
            parent_id: Identifier of the parent folder
            name: Folder name

        Returns:
            Identifier of the existing or newly created folder

        Raises:
            StorageError: If the lookup or creation fails
        """
        pass

    @abstractmethod
    def exists(self, folder_id: str, name: str) -> bool:
        """Check whether a file with this name already exists in a folder."""
        pass

    @abstractmethod
    def upload(
        self,
        folder_id: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload a file into a folder and return its identifier."""
        pass


class InMemoryStorage(RemoteStorage):
    """Store files in memory (for testing and dry runs)."""

    def __init__(self):
        self.folders: set[str] = set()
        self.files: dict[str, bytes] = {}

    def ensure_folder(self, parent_id: str, name: str) -> str:
        folder_id = f"{parent_id}/{name}"
        self.folders.add(folder_id)
        return folder_id

    def exists(self, folder_id: str, name: str) -> bool:
        return f"{folder_id}/{name}" in self.files

    def upload(
        self,
        folder_id: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        key = f"{folder_id}/{name}"
        self.files[key] = data
        return key
