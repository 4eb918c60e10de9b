"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    owner_id: UUID | str | None = None,
    nominee_id: UUID | str | None = None,
    stage: str | None = None,
    run_id: str | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict with identifiers only (no emails, codes or message bodies)."""
    context: dict[str, Any] = {}
    if owner_id:
        context["owner_id"] = str(owner_id)
    if nominee_id:
        context["nominee_id"] = str(nominee_id)
    if stage:
        context["stage"] = stage
    if run_id:
        context["run_id"] = run_id
    if route:
        context["route"] = route
    return context
