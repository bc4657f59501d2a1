"""JsonModel base class for API communication."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model with camelCase JSON and snake_case Python attributes.

    - JSON output uses camelCase (HTTP responses, relay payloads)
    - Internal Python uses snake_case
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump_json(self, **kwargs) -> str:
        """Override to ensure camelCase in JSON output."""
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_payload(self, exclude_none: bool = True) -> dict:
        """JSON-safe camelCase dict, suitable for relay payloads."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
