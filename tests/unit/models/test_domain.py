"""Unit tests for domain models."""

import time
from datetime import datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from jobrelay.clock import utcnow
from jobrelay.enums import PublishStatus
from jobrelay.models.domain import (
    Account,
    ContextSession,
    ContextSessionSummary,
    CredentialArtifact,
    CredentialArtifactSet,
    DestinationResult,
    Job,
    PublishSummary,
    normalize_account_key,
)

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _artifact(name: str, *, value: str = "v", expires: datetime | None = None) -> CredentialArtifact:
    return CredentialArtifact(name=name, value=value, domain=".facebook.com", expires=expires)


offsets = st.one_of(st.none(), st.integers(min_value=-10_000, max_value=10_000))


class TestCredentialArtifactSetValidity:
    @given(identity_offset=offsets, session_offset=offsets)
    @settings(max_examples=100)
    def test_property_valid_iff_both_cookies_live(self, identity_offset, session_offset):
        """A set is valid exactly when both required cookies are unexpired."""

        def expiry(offset):
            return None if offset is None else NOW + timedelta(seconds=offset)

        artifact_set = CredentialArtifactSet(
            account_key="k",
            artifacts=[
                _artifact("c_user", expires=expiry(identity_offset)),
                _artifact("xs", expires=expiry(session_offset)),
            ],
        )

        def live(offset):
            return offset is None or offset > 0

        assert artifact_set.is_valid(NOW) == (live(identity_offset) and live(session_offset))

    @given(names=st.lists(st.sampled_from(["c_user", "xs", "datr", "fr"]), max_size=6))
    def test_property_missing_required_cookie_is_invalid(self, names):
        artifact_set = CredentialArtifactSet(
            account_key="k", artifacts=[_artifact(n) for n in names]
        )
        assert artifact_set.is_valid(NOW) == ({"c_user", "xs"} <= set(names))

    def test_empty_value_is_not_valid(self):
        artifact_set = CredentialArtifactSet(
            account_key="k", artifacts=[_artifact("c_user"), _artifact("xs", value="")]
        )
        assert not artifact_set.is_valid(NOW)

    def test_custom_artifact_names(self):
        artifact_set = CredentialArtifactSet(
            account_key="k", artifacts=[_artifact("sid"), _artifact("token")]
        )
        assert artifact_set.is_valid(NOW, identity_name="sid", session_name="token")
        assert not artifact_set.is_valid(NOW)


class TestCredentialArtifactCookies:
    def test_round_trip_through_browser_cookie(self):
        expires = time.time() + 3600
        cookie = {
            "name": "xs",
            "value": "secret",
            "domain": ".facebook.com",
            "path": "/",
            "expires": expires,
            "httpOnly": True,
            "secure": True,
            "sameSite": "Lax",
        }

        artifact = CredentialArtifact.from_browser_cookie(cookie)
        rendered = artifact.to_browser_cookie()

        assert rendered["sameSite"] == "Lax"
        assert rendered["httpOnly"] is True
        assert abs(rendered["expires"] - expires) < 1

    def test_session_cookie_has_no_expiry(self):
        artifact = CredentialArtifact.from_browser_cookie(
            {"name": "c_user", "value": "1", "domain": ".facebook.com", "expires": -1}
        )
        assert artifact.expires is None
        assert "expires" not in artifact.to_browser_cookie()

    def test_unknown_same_site_falls_back_to_none(self):
        artifact = CredentialArtifact(
            name="fr", value="x", domain=".facebook.com", same_site="no_restriction"
        )
        assert artifact.to_browser_cookie()["sameSite"] == "None"

    def test_domain_matching(self):
        artifact = CredentialArtifact(name="x", value="y", domain=".m.facebook.com")
        assert artifact.matches_domain("facebook.com")
        assert artifact.matches_domain(".facebook.com")
        assert not artifact.matches_domain("notfacebook.com")
        assert not CredentialArtifact(
            name="x", value="y", domain="evilfacebook.com"
        ).matches_domain("facebook.com")

    def test_secret_value_not_in_repr(self):
        assert "hunter2" not in repr(_artifact("xs", value="hunter2"))
        assert "hunter2" not in repr(Account(identity="a@b.com", secret="hunter2"))


class TestAccountKey:
    def test_normalization(self):
        assert normalize_account_key("  Jobs.Poster@Example.com ") == "jobs_poster_example_com"
        assert Account(identity="Jobs.Poster@Example.com", secret="s").key == "jobs_poster_example_com"


class TestJob:
    def test_is_open(self):
        now = utcnow()
        assert Job(id="j", title="t").is_open(now)
        assert not Job(id="j", title="t", is_active=False).is_open(now)
        assert not Job(id="j", title="t", expires_at=now - timedelta(seconds=1)).is_open(now)
        assert Job(id="j", title="t", expires_at=now + timedelta(days=1)).is_open(now)


class TestSummaries:
    def test_publish_summary_counts(self):
        summary = PublishSummary(
            job_id="j",
            job_title="t",
            results=[
                DestinationResult(destination="a", record_id="1", status=PublishStatus.SUCCESS),
                DestinationResult(destination="b", record_id="2", status=PublishStatus.FAILED),
                DestinationResult(destination="c", record_id="3", status=PublishStatus.SUCCESS),
            ],
        )
        dumped = summary.model_dump(by_alias=True)
        assert dumped["successful"] == 2
        assert dumped["failed"] == 1
        assert dumped["jobTitle"] == "t"

    def test_context_session_summary(self):
        session = ContextSession(
            session_token="session_abc",
            context_data={"jobTitle": "Engineer", "company": "Acme"},
            expires_at=NOW,
        )
        summary = ContextSessionSummary.from_session(session)
        assert summary.job_title == "Engineer"
        assert summary.company == "Acme"
        assert not session.is_live(NOW)
