"""Post body composition and deep-link minting."""

import re
from typing import Any
from urllib.parse import quote

from jobrelay.clock import epoch_millis
from jobrelay.models.domain import Job
from jobrelay.services.token_codec import PUBLISH_RECORD_KEY, encode_context

DEEP_LINK_PATH = "/api/messenger-redirect"

_HASHTAG_UNSAFE = re.compile(r"[^\w]+", re.UNICODE)


def build_context_payload(job: Job, record_id: str, destination: str) -> dict[str, Any]:
    """Context payload embedded in a deep link at publish time."""
    payload: dict[str, Any] = {
        PUBLISH_RECORD_KEY: record_id,
        "jobId": job.id,
        "jobTitle": job.title,
        "company": job.company,
        "location": job.location,
        "jobType": job.job_type,
        "experience": job.experience,
        "salaryRange": job.salary_range,
        "destination": destination,
        "timestamp": epoch_millis(),
    }
    return {k: v for k, v in payload.items() if v is not None}


class DeepLinkBuilder:
    """Mints deep links that point back at this service's redirect endpoint."""

    def __init__(self, public_base_url: str, path: str = DEEP_LINK_PATH):
        self._base = public_base_url.rstrip("/")
        self._path = path

    def link_for(self, job: Job, record_id: str, destination: str) -> str:
        token = encode_context(build_context_payload(job, record_id, destination))
        return f"{self._base}{self._path}?context={quote(token, safe='')}"


def _hashtag(value: str | None) -> str | None:
    if not value:
        return None
    tag = _HASHTAG_UNSAFE.sub("", value.lower())
    return f"#{tag}" if tag else None


def compose_post(job: Job, deep_link: str | None) -> str:
    """Render the fixed post template for a job."""
    lines = [f"{job.title} at {job.company}" if job.company else job.title, ""]
    if job.location:
        lines.append(f"Location: {job.location}")
    if job.job_type:
        lines.append(f"Type: {job.job_type}")
    if job.experience:
        lines.append(f"Experience: {job.experience}")
    if job.salary_range:
        lines.append(f"Salary: {job.salary_range}")

    if job.description:
        lines += ["", "About the Role:", job.description]

    if job.requirements:
        lines += ["", "Requirements:"] + [f"• {item}" for item in job.requirements]

    if job.responsibilities:
        lines += ["", "Responsibilities:"] + [
            f"• {item}" for item in job.responsibilities
        ]

    if job.perks:
        lines += ["", f"Perks: {job.perks}"]

    lines.append("")
    if deep_link:
        lines.append(f"🎯 Interested? Apply directly here: {deep_link}")
    else:
        lines.append('Interested? Send me a "hello" through the page inbox!')

    tags = ["#hiring", "#jobs"] + [
        tag for tag in (_hashtag(job.job_type), _hashtag(job.location)) if tag
    ]
    lines += ["", " ".join(tags)]
    return "\n".join(lines)
