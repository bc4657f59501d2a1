"""Pydantic domain models.

DAOs return these, never ORM rows. Services and routers only see these types.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, computed_field

from jobrelay.clock import utcnow
from jobrelay.enums import PublishStatus, RunStatus
from jobrelay.models.base import JsonModel

IDENTITY_ARTIFACT = "c_user"
SESSION_ARTIFACT = "xs"

_VALID_SAME_SITE = {"Strict", "Lax", "None"}


def normalize_account_key(identity: str) -> str:
    """Derive the storage key for an account identity (email or login)."""
    return identity.strip().lower().replace("@", "_").replace(".", "_")


class Account(JsonModel):
    """An automation account: login identity and secret."""

    identity: str
    secret: str = Field(repr=False)

    @property
    def key(self) -> str:
        return normalize_account_key(self.identity)


class CredentialArtifact(JsonModel):
    """A single persisted browser cookie."""

    name: str
    value: str = Field(repr=False)
    domain: str
    path: str = "/"
    expires: datetime | None = None
    http_only: bool = False
    secure: bool = False
    same_site: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires is None:
            return False
        return self.expires <= (now or utcnow())

    def matches_domain(self, site_domain: str) -> bool:
        """True when the cookie domain is the site domain or a subdomain of it."""
        cookie_domain = self.domain.lstrip(".").lower()
        site = site_domain.lstrip(".").lower()
        return cookie_domain == site or cookie_domain.endswith("." + site)

    def to_browser_cookie(self) -> dict[str, Any]:
        """Render in the shape Playwright's ``add_cookies`` expects."""
        cookie: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path or "/",
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": (
                self.same_site if self.same_site in _VALID_SAME_SITE else "None"
            ),
        }
        if self.expires is not None:
            cookie["expires"] = self.expires.replace(tzinfo=UTC).timestamp()
        return cookie

    @classmethod
    def from_browser_cookie(cls, cookie: dict[str, Any]) -> "CredentialArtifact":
        """Build from a cookie dict returned by ``BrowserContext.cookies()``.

        Session cookies report ``expires == -1`` and are stored without expiry.
        """
        raw_expires = cookie.get("expires")
        expires = None
        if isinstance(raw_expires, (int, float)) and raw_expires > 0:
            expires = datetime.fromtimestamp(raw_expires, UTC).replace(tzinfo=None)
        return cls(
            name=cookie["name"],
            value=cookie.get("value", ""),
            domain=cookie.get("domain", ""),
            path=cookie.get("path") or "/",
            expires=expires,
            http_only=bool(cookie.get("httpOnly", False)),
            secure=bool(cookie.get("secure", False)),
            same_site=cookie.get("sameSite"),
        )


class CredentialArtifactSet(JsonModel):
    """All persisted cookies for one account."""

    account_key: str
    artifacts: list[CredentialArtifact] = Field(default_factory=list)
    updated_at: datetime | None = None

    def live_artifacts(self, now: datetime | None = None) -> list[CredentialArtifact]:
        now = now or utcnow()
        return [a for a in self.artifacts if not a.is_expired(now)]

    def is_valid(
        self,
        now: datetime | None = None,
        *,
        identity_name: str = IDENTITY_ARTIFACT,
        session_name: str = SESSION_ARTIFACT,
    ) -> bool:
        """A set is usable only while both the identity and session cookies
        are present, non-empty and unexpired."""
        now = now or utcnow()
        live = {a.name for a in self.live_artifacts(now) if a.value}
        return identity_name in live and session_name in live


class Job(JsonModel):
    """A job listing to be published."""

    id: str
    title: str
    company: str | None = None
    location: str | None = None
    job_type: str | None = None
    experience: str | None = None
    salary_range: str | None = None
    description: str | None = None
    requirements: list[str] = Field(default_factory=list)
    responsibilities: list[str] = Field(default_factory=list)
    perks: str | None = None
    destinations: list[str] = Field(default_factory=list)
    is_active: bool = True
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_open(self, now: datetime | None = None) -> bool:
        if not self.is_active:
            return False
        if self.expires_at is None:
            return True
        return self.expires_at > (now or utcnow())


class PublishRecord(JsonModel):
    """One attempt to publish a job to one destination."""

    id: str
    job_id: str
    destination: str
    status: PublishStatus = PublishStatus.PENDING
    post_url: str | None = None
    error_message: str | None = None
    attempt_count: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContextSession(JsonModel):
    """A short-lived lookup that carries job context into a chat conversation."""

    id: int | None = None
    session_token: str
    publish_record_id: str | None = None
    context_data: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    external_user_id: str | None = None
    conversation_started: bool = False
    created_at: datetime | None = None
    expires_at: datetime
    last_accessed_at: datetime | None = None

    def is_live(self, now: datetime | None = None) -> bool:
        return self.is_active and self.expires_at > (now or utcnow())


class ContextSessionSummary(JsonModel):
    """Compact listing view of a context session."""

    session_token: str
    publish_record_id: str | None = None
    job_title: str | None = None
    company: str | None = None
    external_user_id: str | None = None
    conversation_started: bool = False
    created_at: datetime | None = None
    expires_at: datetime
    last_accessed_at: datetime | None = None

    @classmethod
    def from_session(cls, session: ContextSession) -> "ContextSessionSummary":
        data = session.context_data
        return cls(
            session_token=session.session_token,
            publish_record_id=session.publish_record_id,
            job_title=data.get("jobTitle"),
            company=data.get("company"),
            external_user_id=session.external_user_id,
            conversation_started=session.conversation_started,
            created_at=session.created_at,
            expires_at=session.expires_at,
            last_accessed_at=session.last_accessed_at,
        )


class DestinationResult(JsonModel):
    """Result of publishing one job to one destination."""

    destination: str
    record_id: str
    status: PublishStatus
    post_url: str | None = None
    error: str | None = None
    recovered_from_crash: bool = False
    confirmed: bool = False


class PublishSummary(JsonModel):
    """Result of a publish run across all destinations of a job."""

    job_id: str
    job_title: str
    results: list[DestinationResult] = Field(default_factory=list)

    @computed_field
    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.status == PublishStatus.SUCCESS)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == PublishStatus.FAILED)


class RunState(JsonModel):
    """Current or last publish run for an account."""

    status: RunStatus = RunStatus.IDLE
    job_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    summary: PublishSummary | None = None
    error: str | None = None
