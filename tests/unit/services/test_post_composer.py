"""Unit tests for post composition and deep-link minting."""

from urllib.parse import parse_qs, urlparse

from jobrelay.models.domain import Job
from jobrelay.services.post_composer import (
    DEEP_LINK_PATH,
    DeepLinkBuilder,
    build_context_payload,
    compose_post,
)
from jobrelay.services.token_codec import decode_context


def _job(**overrides) -> Job:
    fields = {
        "id": "job-1",
        "title": "Backend Engineer",
        "company": "Acme",
        "location": "Tel Aviv",
        "job_type": "Full-time",
        "experience": "3+ years",
        "salary_range": "30k-40k",
        "description": "Build the APIs.",
        "requirements": ["Python", "SQL"],
        "responsibilities": ["Ship features"],
        "perks": "Free lunch",
        "destinations": ["https://www.facebook.com/groups/devjobs"],
    }
    fields.update(overrides)
    return Job(**fields)


class TestBuildContextPayload:
    def test_carries_record_and_job_fields(self):
        payload = build_context_payload(_job(), "rec-1", "https://example.com/g/1")

        assert payload["publishRecordId"] == "rec-1"
        assert payload["jobId"] == "job-1"
        assert payload["jobTitle"] == "Backend Engineer"
        assert payload["destination"] == "https://example.com/g/1"
        assert isinstance(payload["timestamp"], int)

    def test_drops_missing_fields(self):
        payload = build_context_payload(
            _job(company=None, salary_range=None), "rec-1", "dest"
        )
        assert "company" not in payload
        assert "salaryRange" not in payload


class TestDeepLinkBuilder:
    def test_link_round_trips_through_codec(self):
        link = DeepLinkBuilder("https://relay.example.com/").link_for(_job(), "rec-42", "dest")

        parsed = urlparse(link)
        assert f"{parsed.scheme}://{parsed.netloc}" == "https://relay.example.com"
        assert parsed.path == DEEP_LINK_PATH

        token = parse_qs(parsed.query)["context"][0]
        decoded = decode_context(token)
        assert decoded.publish_record_id == "rec-42"
        assert decoded.payload["jobTitle"] == "Backend Engineer"


class TestComposePost:
    def test_full_template(self):
        text = compose_post(_job(), "https://relay.example.com/x")

        lines = text.splitlines()
        assert lines[0] == "Backend Engineer at Acme"
        assert "Location: Tel Aviv" in lines
        assert "Salary: 30k-40k" in lines
        assert "• Python" in lines
        assert "• Ship features" in lines
        assert "Perks: Free lunch" in lines
        assert "🎯 Interested? Apply directly here: https://relay.example.com/x" in lines
        assert lines[-1] == "#hiring #jobs #fulltime #telaviv"

    def test_minimal_job_without_link(self):
        job = Job(id="j", title="Designer")
        text = compose_post(job, None)

        assert text.splitlines()[0] == "Designer"
        assert "Requirements:" not in text
        assert "Apply directly here" not in text
        assert text.endswith("#hiring #jobs")
