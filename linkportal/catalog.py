import uuid
from typing import Any, Dict, List, Optional

from loguru import logger

from .errors import InvalidInput, InvalidUrl, NotFound
from .storage import Folder, Link, SnapshotStore
from .url_safety import ensure_url_safe


def new_folder_id() -> str:
    return "folder-" + str(uuid.uuid4())


def new_link_id() -> str:
    return "link-" + str(uuid.uuid4())


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


class CatalogService:
    """Folder/link CRUD on top of the snapshot store. Callers enforce the admin gate."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    async def list_folders(self) -> List[Dict[str, Any]]:
        """Public view of the catalog; claim data is never included."""
        data = await self.store.load()
        return [
            {
                "id": f.id,
                "title": f.title,
                "links": [{"id": l.id, "name": l.name, "url": l.url} for l in f.links],
            }
            for f in data.folders
        ]

    async def add_folder(self, title: Optional[str]) -> str:
        title = _clean(title)
        if not title:
            raise InvalidInput("title required")
        folder = Folder(id=new_folder_id(), title=title, links=[])
        async with self.store.mutation() as data:
            data.folders.append(folder)
            await self.store.save(data)
        logger.info("Added folder {} ({!r})", folder.id, title)
        return folder.id

    async def remove_folder(self, folder_id: Optional[str]) -> None:
        if not folder_id:
            raise InvalidInput("id required")
        async with self.store.mutation() as data:
            idx = next((i for i, f in enumerate(data.folders) if f.id == folder_id), None)
            if idx is None:
                raise NotFound("not found")
            removed = data.folders.pop(idx)
            await self.store.save(data)
        logger.info("Removed folder {} with {} links", folder_id, len(removed.links))

    async def add_link(
        self,
        folder_id: Optional[str],
        name: Optional[str],
        url: Optional[str],
    ) -> str:
        if not folder_id or not _clean(name) or not _clean(url):
            raise InvalidInput("folderId, name, url required")

        safe = ensure_url_safe(_clean(url))
        if not safe:
            raise InvalidUrl()

        link = Link(id=new_link_id(), name=_clean(name), url=safe)
        async with self.store.mutation() as data:
            folder = data.find_folder(folder_id)
            if not folder:
                raise NotFound("folder not found")
            folder.links.append(link)
            await self.store.save(data)
        logger.info("Added link {} to {}: {}", link.id, folder_id, safe)
        return link.id

    async def remove_link(self, link_id: Optional[str]) -> None:
        if not link_id:
            raise InvalidInput("id required")
        async with self.store.mutation() as data:
            found = data.find_link(link_id)
            if not found:
                raise NotFound("link not found")
            folder, link = found
            folder.links.remove(link)
            await self.store.save(data)
        logger.info("Removed link {} from {}", link_id, folder.id)

    async def clear_claim_timer(self, visitor_id: str) -> bool:
        """Forget a visitor's last claim. Returns True if there was one."""
        async with self.store.mutation() as data:
            if visitor_id not in data.claims:
                return False
            del data.claims[visitor_id]
            await self.store.save(data)
        logger.info("Cleared claim timer for {}", visitor_id)
        return True
