from typing import Any

from evsrc.domain.source.model.source import SOURCE_TYPES, EventSource, SourceKind


def row_to_source(row: dict[str, Any]) -> EventSource:
    """Convert database row to the EventSource subclass of its kind."""
    source_type = SOURCE_TYPES[SourceKind(row["kind"])]
    return source_type.model_validate(
        {
            "metadata": {
                "namespace": row["namespace"],
                "name": row["name"],
                "uid": row["uid"],
                "generation": row["generation"],
                "resource_version": row["resource_version"],
                "labels": row.get("labels") or {},
                "finalizers": row.get("finalizers") or [],
                "deletion_timestamp": row.get("deletion_timestamp"),
            },
            "spec": row["spec"],
            "status": row.get("status") or {},
        }
    )


def spec_to_dict(source: EventSource) -> dict[str, Any]:
    return source.spec.model_dump(mode="json", exclude_none=True)


def status_to_dict(source: EventSource) -> dict[str, Any]:
    return source.status.model_dump(mode="json")
