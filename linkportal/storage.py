import asyncio
import json
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import StorageFailure


class Link(BaseModel):
    id: str
    name: str
    url: str


class Folder(BaseModel):
    id: str
    title: str
    links: List[Link] = Field(default_factory=list)

    @field_validator("links", mode="before")
    @classmethod
    def coerce_links(cls, v):
        return v if isinstance(v, list) else []


class ClaimRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_claim_at: int = Field(alias="lastClaimAt")  # ms since epoch


class Store(BaseModel):
    folders: List[Folder] = Field(default_factory=list)
    claims: Dict[str, ClaimRecord] = Field(default_factory=dict)

    @field_validator("folders", mode="before")
    @classmethod
    def coerce_folders(cls, v):
        return v if isinstance(v, list) else []

    @field_validator("claims", mode="before")
    @classmethod
    def coerce_claims(cls, v):
        return v if isinstance(v, dict) else {}

    def find_folder(self, folder_id: str) -> Optional[Folder]:
        return next((f for f in self.folders if f.id == folder_id), None)

    def find_link(self, link_id: str) -> Optional[Tuple[Folder, Link]]:
        for folder in self.folders:
            for link in folder.links:
                if link.id == link_id:
                    return folder, link
        return None


class CorruptOrMissingSnapshot(Exception):
    pass


class SnapshotStore:
    """
    JSON snapshot of the Store on disk.

    Every save is queued and written by a single worker task, tmp file then
    os.replace, so a reader of ``path`` only ever sees a complete snapshot
    and saves land in the order they were enqueued.

    ``mutation()`` holds a store-wide lock across load -> mutate -> save so
    two read-modify-write operations can't overwrite each other.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._lock: Optional[asyncio.Lock] = None

    def _bind_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is loop and self._worker and not self._worker.done():
            return
        if self._loop is not loop:
            self._lock = asyncio.Lock()
        self._loop = loop
        self._queue = asyncio.Queue()
        self._worker = loop.create_task(self._write_worker())

    async def _write_worker(self):
        queue = self._queue
        while True:
            payload, done = await queue.get()
            try:
                await asyncio.to_thread(self._write_snapshot, payload)
            except Exception as exc:
                logger.opt(exception=exc).error("Error saving {}", self.path)
                if not done.done():
                    done.set_exception(StorageFailure())
            else:
                if not done.done():
                    done.set_result(None)
            finally:
                queue.task_done()

    def _write_snapshot(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(self.tmp_path, self.path)

    def _read_snapshot(self) -> Store:
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise CorruptOrMissingSnapshot(f"{self.path} is not a JSON object")
            return Store.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            # json.JSONDecodeError is a ValueError
            raise CorruptOrMissingSnapshot(str(exc)) from exc

    async def load(self) -> Store:
        """Read the snapshot; a missing or corrupt one is replaced by an empty Store."""
        try:
            return await asyncio.to_thread(self._read_snapshot)
        except CorruptOrMissingSnapshot as exc:
            if self.path.exists():
                logger.warning("Snapshot {} unreadable, starting empty: {}", self.path, exc)
            else:
                logger.info("No snapshot at {}, creating an empty store", self.path)
        store = Store()
        try:
            await self.save(store)
        except StorageFailure:
            pass  # already logged by the writer; callers still get a usable Store
        return store

    async def save(self, store: Store) -> None:
        """Queue a full snapshot write and wait for it. Raises StorageFailure."""
        self._bind_loop()
        payload = json.dumps(store.model_dump(mode="json", by_alias=True), indent=2)
        done = self._loop.create_future()
        await self._queue.put((payload, done))
        await done

    @asynccontextmanager
    async def mutation(self) -> AsyncIterator[Store]:
        self._bind_loop()
        async with self._lock:
            yield await self.load()

    async def close(self) -> None:
        if self._worker and not self._worker.done():
            if self._loop is asyncio.get_running_loop():
                await self._queue.join()
            self._worker.cancel()
        self._worker = None
