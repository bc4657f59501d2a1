"""Data access objects. Every DAO returns Pydantic domain models."""

from jobrelay.dao.context_session_dao import ContextSessionDAO
from jobrelay.dao.credential_dao import CredentialDAO
from jobrelay.dao.job_dao import JobDAO
from jobrelay.dao.publish_record_dao import PublishRecordDAO

__all__ = ["ContextSessionDAO", "CredentialDAO", "JobDAO", "PublishRecordDAO"]
