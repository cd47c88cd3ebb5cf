"""Reconciliation pass: prune entries whose owners are gone.

One pass holds the clean slot and then the table lock for its whole
duration, walks every platform, and saves the directory once at the end.
Owner lookups are cached for the pass so each distinct owner is resolved
at most once.  A failed lookup aborts the pass before anything is saved.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tagspine.core.errors import CollaboratorError, TagSpineError
from tagspine.core.logging import get_logger

from .collaborators import IdentityResolver, RoleManager, delete_roles_best_effort
from .gate import MutationGate
from .repository import DirectoryRepository
from .store import DirectoryStore

logger = get_logger(__name__)


@dataclass
class CleanupReport:
    """What one reconciliation pass changed."""

    platforms_removed: list[str] = field(default_factory=list)
    entries_removed: list[tuple[str, str]] = field(default_factory=list)
    names_refreshed: int = 0
    owners_resolved: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.platforms_removed or self.entries_removed or self.names_refreshed)

    def to_dict(self) -> dict:
        return {
            "platforms_removed": list(self.platforms_removed),
            "entries_removed": [{"platform": p, "owner_id": o} for p, o in self.entries_removed],
            "names_refreshed": self.names_refreshed,
            "owners_resolved": self.owners_resolved,
        }


class Reconciler:
    def __init__(
        self,
        repository: DirectoryRepository,
        gate: MutationGate,
        resolver: IdentityResolver,
        roles: RoleManager | None = None,
    ) -> None:
        self.repository = repository
        self.gate = gate
        self.resolver = resolver
        self.roles = roles

    async def run(self) -> CleanupReport:
        """Run one pass.

        Raises:
            CleanBusyError: another pass is already running
            NoDirectoryError: nothing has been stored yet
            CollaboratorError: the identity resolver failed; nothing was saved
        """
        with self.gate.cleaning():
            async with self.gate.mutation():
                store = DirectoryStore(self.repository.load())
                report, role_refs = await self._reconcile(store)
                self.repository.save(store.directory)

        await delete_roles_best_effort(self.roles, role_refs)
        logger.info("cleanup_pass_finished", **report.to_dict())
        return report

    async def _reconcile(self, store: DirectoryStore) -> tuple[CleanupReport, list[str | None]]:
        report = CleanupReport()
        role_refs: list[str | None] = []
        verdicts: dict[str, str | None] = {}

        for key in list(store.platforms):
            platform = store.platforms[key]
            if not platform.users or not platform.name:
                del store.platforms[key]
                report.platforms_removed.append(key)
                role_refs.append(platform.role_ref)
                logger.info("platform_removed", platform=key, reason="empty")
                continue

            for owner_id in list(platform.users):
                if owner_id not in verdicts:
                    verdicts[owner_id] = await self._resolve(owner_id)
                name = verdicts[owner_id]

                if name is None:
                    removal = store.remove_user(key, owner_id)
                    report.entries_removed.append((key, owner_id))
                    logger.info("invalid_user_removed", platform=key, owner_id=owner_id)
                    if removal.platform_removed:
                        report.platforms_removed.append(key)
                        role_refs.append(removal.role_ref)
                        logger.info("platform_removed", platform=key, reason="cleanup")
                        break
                    continue

                entry = platform.users[owner_id]
                if entry.display_name != name:
                    entry.display_name = name
                    report.names_refreshed += 1

        report.owners_resolved = len(verdicts)
        return report, role_refs

    async def _resolve(self, owner_id: str) -> str | None:
        try:
            return await self.resolver.resolve(owner_id)
        except TagSpineError:
            raise
        except Exception as e:
            raise CollaboratorError("identity lookup failed", cause=e).with_context(owner_id=owner_id) from e
