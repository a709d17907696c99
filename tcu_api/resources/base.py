"""Shared plumbing for resource classes."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from tcu_api.errors import ValidationError
from tcu_api.pipeline import RequestPipeline
from tcu_api.response_tree import ObjectNode
from tcu_api.xml_body import ParameterBlock


class BaseResource:
    """Base class for one provider area.

    Subclasses validate inputs and call ``_post`` with the endpoint path and
    parameter blocks; the pipeline does the rest.
    """

    def __init__(self, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline

    def _post(
        self,
        endpoint: str,
        parameters: ParameterBlock | Sequence[ParameterBlock] | None = None,
    ) -> ObjectNode:
        return self._pipeline.execute(endpoint, parameters, "POST")

    def _get(
        self,
        endpoint: str,
        parameters: ParameterBlock | Sequence[ParameterBlock] | None = None,
    ) -> ObjectNode:
        return self._pipeline.execute(endpoint, parameters, "GET")


def as_records(data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Accept one record or a list of records and always return a list."""
    if isinstance(data, Mapping):
        return [data]
    if isinstance(data, (list, tuple)) and data:
        if all(isinstance(item, Mapping) for item in data):
            return list(data)
    raise ValidationError(
        "Invalid records", ["Expected a record mapping or a non-empty list of record mappings"]
    )


def pick(record: Mapping[str, Any], fields: Sequence[str]) -> dict[str, Any]:
    """Copy the listed fields that are present and non-empty, in order."""
    return {name: record[name] for name in fields if record.get(name) not in (None, "")}


def ensure(value: Any, predicate: Callable[[str], bool], label: str) -> str:
    """Return *value* unchanged, or raise ValidationError naming *label*."""
    if not isinstance(value, str) or not predicate(value):
        raise ValidationError("Validation failed", [f"Invalid {label}: {value}"])
    return value


def require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Validation failed", [f"{label} is required"])
    return value
