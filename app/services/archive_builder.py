"""
Build ZIP archives from Drive files and folder trees.
"""

from __future__ import annotations

import io
import logging
import posixpath
import zipfile
from typing import Dict, List, Optional, Sequence, Set, Tuple

from app.clients.google_drive import GoogleDriveClient
from app.core.config import ArchiveSettings
from app.core.errors import (
    ArchiveLimitError,
    ItemFetchError,
    PermissionGrantError,
    ProviderTransportError,
)
from app.models.drive import (
    ArchiveItemOutcome,
    ArchiveResult,
    ItemStatus,
    PublishResult,
    RemoteNode,
)

logger = logging.getLogger(__name__)

ZIP_MIME_TYPE = "application/zip"


class ArchiveBuilder:
    """Stream remote files into a single maximally-compressed ZIP archive.

    Items are fetched strictly one after another. A failure to fetch one item
    is recorded in the result and never aborts the job.
    """

    _COMPRESSION_LEVEL = 9

    def __init__(self, drive_client: GoogleDriveClient, settings: ArchiveSettings) -> None:
        self._drive = drive_client
        self._settings = settings

    async def build_from_file_list(
        self, file_ids: Sequence[str], archive_name: str
    ) -> ArchiveResult:
        """Archive the given files, in input order, under their bare names."""
        buffer = io.BytesIO()
        outcomes: List[ArchiveItemOutcome] = []
        used_names: Set[str] = set()

        with self._open_archive(buffer) as archive:
            for file_id in file_ids:
                try:
                    metadata = await self._fetch_metadata(file_id)
                    entry_name = _unique_name(
                        _safe_segment(metadata.get("name") or file_id), used_names
                    )
                    await self._append(archive, file_id, entry_name)
                except ItemFetchError as exc:
                    logger.warning("Skipping %s in %s: %s", file_id, archive_name, exc.reason)
                    outcomes.append(
                        ArchiveItemOutcome(file_id, None, ItemStatus.FAILED, exc.reason)
                    )
                    continue
                outcomes.append(ArchiveItemOutcome(file_id, entry_name, ItemStatus.SUCCEEDED))

        return self._finalize(archive_name, buffer, outcomes)

    async def build_from_folder(
        self, folder_id: str, archive_name: Optional[str] = None
    ) -> ArchiveResult:
        """Archive every leaf file below ``folder_id`` at its relative path."""
        if archive_name is None:
            folder = await self._drive.get_file_metadata(folder_id)
            archive_name = f"{folder.get('name') or folder_id}.zip"

        leaves, outcomes = await self.enumerate_folder(folder_id)
        buffer = io.BytesIO()
        used_names: Set[str] = set()
        with self._open_archive(buffer) as archive:
            for file_id, leaf_path in leaves:
                path = _unique_name(leaf_path, used_names)
                try:
                    await self._append(archive, file_id, path)
                except ItemFetchError as exc:
                    logger.warning("Skipping %s in %s: %s", path, archive_name, exc.reason)
                    outcomes.append(ArchiveItemOutcome(file_id, path, ItemStatus.FAILED, exc.reason))
                    continue
                outcomes.append(ArchiveItemOutcome(file_id, path, ItemStatus.SUCCEEDED))

        return self._finalize(archive_name, buffer, outcomes)

    async def enumerate_folder(
        self, folder_id: str
    ) -> Tuple[List[Tuple[str, str]], List[ArchiveItemOutcome]]:
        """Depth-first walk returning ``(file_id, relative_path)`` leaves.

        Folders only contribute path prefixes. Subfolders that cannot be
        listed or sit below ``max_depth`` are reported as failed outcomes;
        the root listing failing is fatal.
        """
        leaves: List[Tuple[str, str]] = []
        failures: List[ArchiveItemOutcome] = []
        visited: Set[str] = {folder_id}
        seen_nodes = 0

        root_children = await self._list_children(folder_id)
        stack: List[Tuple[RemoteNode, str, int]] = [
            (child, _safe_segment(child.name), 1) for child in reversed(root_children)
        ]

        while stack:
            node, path, depth = stack.pop()
            seen_nodes += 1
            if seen_nodes > self._settings.max_nodes:
                raise ArchiveLimitError(
                    f"Folder {folder_id} has more than {self._settings.max_nodes} nodes."
                )

            if not node.is_folder:
                leaves.append((node.id, path))
                continue

            if node.id in visited:
                logger.warning("Folder %s reached twice at %s; skipping", node.id, path)
                continue
            visited.add(node.id)

            if depth >= self._settings.max_depth:
                failures.append(
                    ArchiveItemOutcome(
                        node.id,
                        path,
                        ItemStatus.FAILED,
                        f"folder deeper than {self._settings.max_depth} levels",
                    )
                )
                continue

            try:
                children = await self._list_children(node.id)
            except ProviderTransportError as exc:
                logger.warning("Cannot list folder %s: %s", path, exc)
                failures.append(ArchiveItemOutcome(node.id, path, ItemStatus.FAILED, str(exc)))
                continue

            for child in reversed(children):
                child_path = posixpath.join(path, _safe_segment(child.name))
                stack.append((child, child_path, depth + 1))

        return leaves, failures

    async def publish(
        self, content: bytes, name: str, destination_folder_id: str
    ) -> PublishResult:
        """Upload an archive and grant anonymous read access.

        Upload failures propagate as ``ProviderTransportError`` (nothing was
        created); a failed permission grant yields a ``created_not_public``
        result instead.
        """
        created = await self._drive.create_file(
            name=name,
            parent_id=destination_folder_id,
            mime_type=ZIP_MIME_TYPE,
            content=content,
        )
        file_id = created["id"]
        result = PublishResult(
            file_id=file_id,
            name=created.get("name", name),
            public_view_url=created.get("webViewLink")
            or f"https://drive.google.com/file/d/{file_id}/view",
            public_download_url=created.get("webContentLink")
            or f"https://drive.google.com/uc?id={file_id}&export=download",
            public=False,
        )

        try:
            await self._drive.grant_public_read(file_id)
        except ProviderTransportError as exc:
            error = PermissionGrantError(f"{file_id} uploaded but not shared: {exc}")
            logger.error("%s", error)
            result.permission_error = str(error)
            return result

        result.public = True
        logger.info("Published archive %s as %s", name, file_id)
        return result

    def _open_archive(self, buffer: io.BytesIO) -> zipfile.ZipFile:
        return zipfile.ZipFile(
            buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self._COMPRESSION_LEVEL,
        )

    async def _list_children(self, folder_id: str) -> List[RemoteNode]:
        return [
            RemoteNode(
                id=child["id"],
                name=child.get("name") or child["id"],
                mime_type=child.get("mimeType", ""),
                parent_id=folder_id,
            )
            for child in await self._drive.list_children(folder_id)
        ]

    async def _fetch_metadata(self, file_id: str) -> Dict:
        try:
            return await self._drive.get_file_metadata(file_id)
        except ProviderTransportError as exc:
            raise ItemFetchError(file_id, f"metadata unavailable: {exc}") from exc

    async def _append(self, archive: zipfile.ZipFile, file_id: str, entry_name: str) -> None:
        try:
            stream = await self._drive.open_read_stream(file_id)
        except ProviderTransportError as exc:
            raise ItemFetchError(file_id, f"content unavailable: {exc}") from exc
        with archive.open(entry_name, mode="w") as entry:
            entry.write(stream.read())
        logger.info("Added %s to archive", entry_name)

    @staticmethod
    def _finalize(
        archive_name: str, buffer: io.BytesIO, outcomes: List[ArchiveItemOutcome]
    ) -> ArchiveResult:
        result = ArchiveResult(name=archive_name, content=buffer.getvalue(), items=outcomes)
        logger.info(
            "Archive %s finished: %s succeeded, %s failed",
            archive_name,
            len(result.succeeded),
            len(result.failed),
        )
        return result


def _safe_segment(name: str) -> str:
    """Turn a Drive name into one relative path segment."""
    segment = name.replace("\\", "/").lstrip("/").replace("/", "_").strip()
    if segment in ("", ".", ".."):
        return "_"
    return segment


def _unique_name(name: str, used: Set[str]) -> str:
    """Suffix ``name`` with `` (n)`` until it is unused within the archive."""
    candidate = name
    stem, ext = posixpath.splitext(name)
    counter = 1
    while candidate in used:
        counter += 1
        candidate = f"{stem} ({counter}){ext}"
    used.add(candidate)
    return candidate


__all__ = ["ArchiveBuilder", "ZIP_MIME_TYPE"]
