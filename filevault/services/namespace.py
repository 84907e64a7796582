"""Per-user hierarchy of folders and files.

Every operation takes the acting ``User`` explicitly and only ever sees that
user's records; a record owned by someone else behaves exactly like a
missing one. When both collections are needed, the ``folders`` lock is
taken before the ``files`` lock.
"""

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import BinaryIO

from filevault.core.errors import NotFoundError, StorageIOError, ValidationError
from filevault.models.database import utcnow
from filevault.models.file import FileMeta
from filevault.models.folder import Folder
from filevault.models.user import User
from filevault.services.blobs import BlobHandle, BlobManager
from filevault.services.metadata import MetadataStore

logger = logging.getLogger(__name__)

RECENT_DAYS = 7


@dataclass
class Listing:
    files: list[FileMeta] = field(default_factory=list)
    folders: list[Folder] = field(default_factory=list)


@dataclass
class Usage:
    total_files: int
    total_bytes: int
    recent_files: int


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


class Namespace:
    def __init__(self, store: MetadataStore, blobs: BlobManager):
        self.store = store
        self.blobs = blobs

    # --- folders ---

    def _owned_folders(self, user: User) -> list[Folder]:
        return [f for f in self.store.load_collection("folders") if f.owner_id == user.id]

    def _owned_files(self, user: User) -> list[FileMeta]:
        return [f for f in self.store.load_collection("files") if f.owner_id == user.id]

    @staticmethod
    def _find_folder(folders: list[Folder], user: User, folder_id: str) -> Folder:
        for folder in folders:
            if folder.id == folder_id and folder.owner_id == user.id:
                return folder
        raise NotFoundError(f"Folder {folder_id} not found", token="folder-not-found")

    def get_folder(self, user: User, folder_id: str) -> Folder:
        return self._find_folder(self.store.load_collection("folders"), user, folder_id)

    def create_folder(self, user: User, name: str, parent_id: str | None = None) -> Folder:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name cannot be empty", token="invalid-folder-name")
        with self.store.mutate("folders") as folders:
            if parent_id:
                self._find_folder(folders, user, parent_id)
            folder = Folder(
                id=str(uuid.uuid4()),
                owner_id=user.id,
                name=name,
                parent_id=parent_id or None,
                created_at=utcnow(),
            )
            folders.append(folder)
        logger.info("User %s created folder %s", user.id, folder.id)
        return folder

    def list_root(self, user: User) -> Listing:
        return Listing(
            files=[f for f in self._owned_files(user) if f.folder_id is None],
            folders=[f for f in self._owned_folders(user) if f.parent_id is None],
        )

    def list_folder(self, user: User, folder_id: str) -> tuple[Folder, Listing]:
        folders = self._owned_folders(user)
        folder = self._find_folder(folders, user, folder_id)
        listing = Listing(
            files=[f for f in self._owned_files(user) if f.folder_id == folder.id],
            folders=[f for f in folders if f.parent_id == folder.id],
        )
        return folder, listing

    def move_folder(self, user: User, folder_id: str, parent_id: str | None) -> Folder:
        """Re-parent a folder, refusing moves that would make it its own ancestor."""
        with self.store.mutate("folders") as folders:
            folder = self._find_folder(folders, user, folder_id)
            if parent_id:
                self._find_folder(folders, user, parent_id)
                by_id = {f.id: f for f in folders}
                ancestor, steps = parent_id, 0
                # Existing data may already hold a cycle, so bound the walk
                while ancestor is not None and steps <= len(folders):
                    if ancestor == folder.id:
                        raise ValidationError("A folder cannot be moved into itself", token="invalid-folder-move")
                    ancestor = by_id[ancestor].parent_id if ancestor in by_id else None
                    steps += 1
            folder.parent_id = parent_id or None
        logger.info("User %s moved folder %s under %s", user.id, folder_id, parent_id or "root")
        return folder

    def delete_folder(self, user: User, folder_id: str) -> int:
        """Delete a folder with all its sub-folders and their files.

        Returns the number of files removed.
        """
        with self.store.mutate("folders") as folders:
            self._find_folder(folders, user, folder_id)
            doomed = {folder_id}
            changed = True
            while changed:
                changed = False
                for f in folders:
                    if f.owner_id == user.id and f.parent_id in doomed and f.id not in doomed:
                        doomed.add(f.id)
                        changed = True
            with self.store.mutate("files") as files:
                removed = [f for f in files if f.owner_id == user.id and f.folder_id in doomed]
                for file in removed:
                    self._remove_blob(file)
                files[:] = [f for f in files if not (f.owner_id == user.id and f.folder_id in doomed)]
            folders[:] = [f for f in folders if f.id not in doomed]
        logger.info("User %s deleted %d folders and %d files", user.id, len(doomed), len(removed))
        return len(removed)

    # --- files ---

    def get_file(self, user: User, file_id: str) -> FileMeta:
        for file in self.store.load_collection("files"):
            if file.id == file_id and file.owner_id == user.id:
                return file
        raise NotFoundError(f"File {file_id} not found", token="file-not-found")

    def open_file(self, user: User, file_id: str) -> tuple[FileMeta, BinaryIO]:
        file = self.get_file(user, file_id)
        return file, self.blobs.retrieve(file.stored_name)

    def place_file(
        self,
        user: User,
        blob: BlobHandle,
        original_name: str,
        content_type: str | None = None,
        folder_id: str | None = None,
    ) -> FileMeta:
        """Create the record for a stored blob in a folder of ``user`` (or the root)."""
        with self.store.lock("folders"):
            if folder_id:
                self.get_folder(user, folder_id)
            with self.store.mutate("files") as files:
                file = FileMeta(
                    id=str(uuid.uuid4()),
                    owner_id=user.id,
                    original_name=original_name,
                    stored_name=blob.name,
                    size=blob.size,
                    content_type=content_type or guess_content_type(original_name),
                    folder_id=folder_id or None,
                    uploaded_at=utcnow(),
                )
                files.append(file)
        logger.info("User %s placed file %s in %s", user.id, file.id, folder_id or "root")
        return file

    def upload(
        self,
        user: User,
        stream: BinaryIO,
        filename: str,
        content_type: str | None = None,
        folder_id: str | None = None,
    ) -> FileMeta:
        """Store an upload and record it.

        The blob is written before the record that points to it. If the record
        cannot be committed the blob is removed again where possible.
        """
        if not filename:
            raise ValidationError("No file was uploaded", token="no-file")
        if folder_id:
            self.get_folder(user, folder_id)
        content_type = content_type or guess_content_type(filename)
        blob = self.blobs.store(stream, filename, content_type)
        try:
            return self.place_file(user, blob, filename, content_type, folder_id)
        except Exception:
            try:
                self.blobs.remove(blob.name)
            except StorageIOError:
                logger.warning("Could not roll back blob %s, it is now orphaned", blob.name)
            raise

    def delete_file(self, user: User, file_id: str) -> FileMeta:
        with self.store.mutate("files") as files:
            for i, file in enumerate(files):
                if file.id == file_id and file.owner_id == user.id:
                    break
            else:
                raise NotFoundError(f"File {file_id} not found", token="file-not-found")
            self._remove_blob(file)
            del files[i]
        logger.info("User %s deleted file %s", user.id, file_id)
        return file

    def _remove_blob(self, file: FileMeta) -> None:
        # The record goes regardless, a leftover blob is only wasted space
        try:
            self.blobs.remove(file.stored_name)
        except StorageIOError:
            logger.warning("Could not remove blob %s of file %s", file.stored_name, file.id)

    def usage(self, user: User) -> Usage:
        files = self._owned_files(user)
        since = utcnow() - timedelta(days=RECENT_DAYS)
        return Usage(
            total_files=len(files),
            total_bytes=sum(f.size for f in files),
            recent_files=sum(1 for f in files if f.uploaded_at >= since),
        )
