"""Credential artifact (browser cookie) data access operations."""

from sqlalchemy import delete, select

from jobrelay.clock import utcnow
from jobrelay.dao.base import BaseDAO
from jobrelay.models.domain import CredentialArtifact, CredentialArtifactSet
from jobrelay.models.orm import CredentialArtifactModel


class CredentialDAO(BaseDAO[CredentialArtifactSet]):
    """Persists one credential artifact set per automation account.

    A set is always written as a whole: saving replaces every prior artifact
    of the account inside a single transaction.
    """

    async def replace_artifacts(
        self, account_key: str, artifacts: list[CredentialArtifact]
    ) -> int:
        """Overwrite the stored set for an account.

        Duplicate (domain, name, path) entries keep the last occurrence.

        Args:
            account_key: Normalized account key.
            artifacts: Artifacts to store.

        Returns:
            Number of artifacts stored.
        """
        unique: dict[tuple[str, str, str], CredentialArtifact] = {}
        for artifact in artifacts:
            unique[(artifact.domain, artifact.name, artifact.path or "/")] = artifact

        now = utcnow()
        async with self._db.session() as session:
            await session.execute(
                delete(CredentialArtifactModel).where(
                    CredentialArtifactModel.account_key == account_key
                )
            )
            session.add_all(
                CredentialArtifactModel(
                    account_key=account_key,
                    domain=a.domain,
                    name=a.name,
                    value=a.value,
                    path=a.path or "/",
                    expires=a.expires,
                    http_only=a.http_only,
                    secure=a.secure,
                    same_site=a.same_site,
                    created_at=now,
                    updated_at=now,
                )
                for a in unique.values()
            )
        return len(unique)

    async def get_artifact_set(self, account_key: str) -> CredentialArtifactSet | None:
        """Load the stored set for an account.

        Returns:
            The artifact set, or None when nothing is stored.
        """
        async with self._db.session() as session:
            result = await session.execute(
                select(CredentialArtifactModel)
                .where(CredentialArtifactModel.account_key == account_key)
                .order_by(CredentialArtifactModel.id)
            )
            rows = result.scalars().all()
            if not rows:
                return None

            return CredentialArtifactSet(
                account_key=account_key,
                artifacts=[
                    CredentialArtifact(
                        name=row.name,
                        value=row.value,
                        domain=row.domain,
                        path=row.path,
                        expires=row.expires,
                        http_only=row.http_only,
                        secure=row.secure,
                        same_site=row.same_site,
                    )
                    for row in rows
                ],
                updated_at=max(row.updated_at for row in rows),
            )

    async def clear(self, account_key: str) -> int:
        """Delete every stored artifact for an account.

        Returns:
            Number of artifacts deleted.
        """
        async with self._db.session() as session:
            result = await session.execute(
                delete(CredentialArtifactModel).where(
                    CredentialArtifactModel.account_key == account_key
                )
            )
            return result.rowcount

    async def delete_expired(self, account_key: str) -> int:
        """Delete expired artifacts for an account.

        Returns:
            Number of expired artifacts deleted.
        """
        async with self._db.session() as session:
            result = await session.execute(
                delete(CredentialArtifactModel)
                .where(CredentialArtifactModel.account_key == account_key)
                .where(CredentialArtifactModel.expires.isnot(None))
                .where(CredentialArtifactModel.expires < utcnow())
            )
            return result.rowcount

