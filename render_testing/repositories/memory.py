"""In-memory repository implementations.

Entities are stored as their persisted ``to_data()`` layout and rebuilt
with ``from_data()`` on every read, so callers never share instances with
the store and persisted state goes through the same validation as a real
database round trip.

Limitations:
- State lives only in this process
- No transactions across repositories (the orchestrator's per-job lock
  provides the ordering)
"""

from typing import Any, Generic, Iterable, Optional, Type, TypeVar
from uuid import UUID

from render_testing.domain.base import DomainEntity
from render_testing.domain.email_client import EmailClient
from render_testing.domain.presets import EmailClientFactory
from render_testing.domain.render_job import RenderJob
from render_testing.domain.screenshot import Screenshot
from render_testing.domain.test_result import TestResult

EntityT = TypeVar("EntityT", bound=DomainEntity)


class _EntityStore(Generic[EntityT]):
    """Dict of persisted payloads keyed by entity ID."""

    def __init__(self, entity_cls: Type[EntityT]):
        self._entity_cls = entity_cls
        self._rows: dict[Any, dict[str, Any]] = {}

    def put(self, key: Any, entity: EntityT) -> None:
        self._rows[key] = entity.to_data()

    def load(self, key: Any) -> Optional[EntityT]:
        row = self._rows.get(key)
        return self._entity_cls.from_data(row) if row is not None else None

    def remove(self, key: Any) -> bool:
        return self._rows.pop(key, None) is not None

    def all(self) -> list[EntityT]:
        return [self._entity_cls.from_data(row) for row in self._rows.values()]

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryRenderJobRepository:
    def __init__(self) -> None:
        self._store: _EntityStore[RenderJob] = _EntityStore(RenderJob)

    async def save(self, job: RenderJob) -> None:
        self._store.put(job.id, job)

    async def get(self, job_id: UUID) -> Optional[RenderJob]:
        return self._store.load(job_id)

    async def list_by_user(self, user_id: str) -> list[RenderJob]:
        return [job for job in self._store.all() if job.user_id == user_id]


class InMemoryTestResultRepository:
    """Test results keyed by their job ID."""

    __test__ = False

    def __init__(self) -> None:
        self._store: _EntityStore[TestResult] = _EntityStore(TestResult)

    async def save(self, result: TestResult) -> None:
        self._store.put(result.job_id, result)

    async def get_by_job(self, job_id: UUID) -> Optional[TestResult]:
        return self._store.load(job_id)


class InMemoryScreenshotRepository:
    def __init__(self) -> None:
        self._store: _EntityStore[Screenshot] = _EntityStore(Screenshot)

    async def save(self, screenshot: Screenshot) -> None:
        self._store.put(screenshot.id, screenshot)

    async def get(self, screenshot_id: UUID) -> Optional[Screenshot]:
        return self._store.load(screenshot_id)

    async def list_by_job(self, job_id: UUID) -> list[Screenshot]:
        """Screenshots of a job in creation order."""
        return [s for s in self._store.all() if s.job_id == job_id]


class InMemoryEmailClientRepository:
    """Email client catalogue."""

    def __init__(self, clients: Iterable[EmailClient] = ()) -> None:
        self._store: _EntityStore[EmailClient] = _EntityStore(EmailClient)
        for client in clients:
            self._store.put(client.id, client)

    @classmethod
    def with_presets(cls) -> "InMemoryEmailClientRepository":
        """Catalogue seeded with every preset client."""
        return cls(EmailClientFactory.all_presets())

    async def save(self, client: EmailClient) -> None:
        self._store.put(client.id, client)

    async def get(self, client_id: str) -> Optional[EmailClient]:
        return self._store.load(client_id)

    async def delete(self, client_id: str) -> bool:
        """Drop a client from the catalogue. Returns False if it was unknown."""
        return self._store.remove(client_id)

    async def get_many(self, client_ids: list[str]) -> list[EmailClient]:
        """Existing clients in request order (unknown IDs and repeats dropped)."""
        clients = []
        seen = set()
        for client_id in client_ids:
            if client_id in seen:
                continue
            seen.add(client_id)
            client = self._store.load(client_id)
            if client is not None:
                clients.append(client)
        return clients

    async def list_active(self) -> list[EmailClient]:
        return [c for c in self._store.all() if c.is_active]
