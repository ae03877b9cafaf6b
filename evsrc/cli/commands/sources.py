"""Source management commands: apply, get, describe, delete."""

import asyncio
import sys
from pathlib import Path

import pydantic
import yaml

from evsrc.cli.console import get_console, relative_time
from evsrc.cli.util import source_repository
from evsrc.config import Config
from evsrc.domain.shared.error import EvsrcError
from evsrc.domain.shared.model.condition import READY
from evsrc.domain.source.model.source import (
    EventSource,
    SourceKey,
    SourceKind,
    source_from_manifest,
)


def _fail(message: str, hint: str | None = None) -> None:
    get_console().error(message, hint=hint)
    sys.exit(1)


def _kind(kind: str) -> SourceKind:
    try:
        return SourceKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in SourceKind)
        _fail(f"Unknown source kind: {kind}", hint=f"Valid kinds: {valid}")
        raise


def _key(kind: str, namespace: str, name: str) -> SourceKey:
    return SourceKey(kind=_kind(kind), namespace=namespace, name=name)


def apply(file: Path) -> None:
    """Create or update the sources described in a YAML manifest.

    Args:
        file: Manifest with one or more documents, each with kind, metadata and spec.
    """
    console = get_console()
    if not file.exists():
        _fail(f"File not found: {file}")

    try:
        sources = [
            source_from_manifest(doc)
            for doc in yaml.safe_load_all(file.read_text())
            if doc
        ]
    except (yaml.YAMLError, pydantic.ValidationError, EvsrcError) as e:
        _fail(f"Invalid manifest {file}: {e}")
        return

    async def _apply() -> list[tuple[EventSource | None, EventSource]]:
        results = []
        async with source_repository(Config()) as repo:  # type: ignore[call-arg]
            for source in sources:
                before = await repo.get(source.key)
                results.append((before, await repo.apply(source)))
        return results

    for before, stored in asyncio.run(_apply()):
        if before is None:
            console.success(f"{stored.key} created")
        elif before.metadata.resource_version != stored.metadata.resource_version:
            console.success(f"{stored.key} configured")
        else:
            console.info(f"{stored.key} unchanged")


def get(kind: str | None = None, namespace: str | None = None) -> None:
    """List sources with their readiness.

    Args:
        kind: Only show sources of this kind.
        namespace: Only show sources in this namespace.
    """
    console = get_console()
    source_kind = _kind(kind) if kind else None

    async def _list() -> list[EventSource]:
        async with source_repository(Config()) as repo:  # type: ignore[call-arg]
            return await repo.list_sources(kind=source_kind, namespace=namespace)

    sources = asyncio.run(_list())
    if not sources:
        console.info("No sources found")
        return

    rows = []
    for source in sources:
        ready = source.status.get_condition(READY)
        rows.append(
            {
                "kind": source.kind,
                "namespace": source.namespace,
                "name": source.name,
                "ready": ready.status if ready else "Unknown",
                "reason": ready.reason if ready else "",
                "sink": source.status.sink_uri or "",
                "since": relative_time(ready.last_transition_time if ready else None),
            }
        )

    console.table(
        rows,
        [
            ("kind", "Kind"),
            ("namespace", "Namespace"),
            ("name", "Name"),
            ("ready", "Ready"),
            ("reason", "Reason"),
            ("sink", "Sink"),
            ("since", "Since"),
        ],
    )


def describe(kind: str, namespace: str, name: str) -> None:
    """Show the spec and status conditions of one source."""
    console = get_console()
    key = _key(kind, namespace, name)

    async def _get() -> EventSource | None:
        async with source_repository(Config()) as repo:  # type: ignore[call-arg]
            return await repo.get(key)

    source = asyncio.run(_get())
    if source is None:
        _fail(f"{key} not found")
        return

    meta = source.metadata
    lines = [
        f"[cyan]UID:[/cyan] {meta.uid}",
        f"[cyan]Generation:[/cyan] {meta.generation} "
        f"(observed {source.status.observed_generation})",
        f"[cyan]Sink:[/cyan] {source.status.sink_uri or '-'}",
        f"[cyan]Address:[/cyan] {source.status.address or '-'}",
    ]
    if meta.finalizers:
        lines.append(f"[cyan]Finalizers:[/cyan] {', '.join(meta.finalizers)}")
    if source.is_deleting:
        lines.append(f"[yellow]Deleting since {meta.deletion_timestamp}[/yellow]")
    lines.append("")
    lines.append(yaml.safe_dump(source.spec.model_dump(mode="json", exclude_none=True)).strip())
    console.panel("\n".join(lines), title=f"[bold]{key}[/bold]", border_style="blue")

    console.table(
        [
            {
                "type": c.type,
                "status": c.status,
                "reason": c.reason,
                "message": c.message,
                "since": relative_time(c.last_transition_time),
            }
            for c in source.status.conditions
        ],
        [
            ("type", "Condition"),
            ("status", "Status"),
            ("reason", "Reason"),
            ("message", "Message"),
            ("since", "Since"),
        ],
    )


def delete(kind: str, namespace: str, name: str) -> None:
    """Delete a source. Sources with a finalizer are removed by the controller."""
    console = get_console()
    key = _key(kind, namespace, name)

    async def _delete() -> tuple[bool, EventSource | None]:
        async with source_repository(Config()) as repo:  # type: ignore[call-arg]
            existed = await repo.get(key) is not None
            return existed, await repo.request_deletion(key)

    existed, remaining = asyncio.run(_delete())
    if not existed:
        _fail(f"{key} not found")
    elif remaining is None:
        console.success(f"{key} deleted")
    else:
        console.success(f"{key} deletion requested")
        console.info("The controller removes it once its adapter and external registrations are cleaned up")
