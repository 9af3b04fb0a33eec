"""
Context providers: short text snapshots of Linear state for the agent.

A provider never raises; remote failures come back as an error text.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .logs import log_event
from .models import SearchFilters
from .service import SERVICE_NAME

logger = logging.getLogger(__name__)

RECENT_ISSUE_COUNT = 10
ACTIVE_PROJECT_STATES = ("started", "planned")
RECENT_ACTIVITY_COUNT = 10


def _unavailable() -> dict[str, Any]:
    return {"text": "Linear service is not available"}


async def issues_provider(runtime: Any) -> dict[str, Any]:
    service = runtime.get_service(SERVICE_NAME)
    if not service:
        return _unavailable()
    try:
        issues = await service.search_issues(
            SearchFilters(limit=RECENT_ISSUE_COUNT, order_by="updatedAt")
        )
        if not issues:
            return {"text": "No recent Linear issues found"}
        rels = await asyncio.gather(
            *(service.issue_relations(i, include=("state", "assignee")) for i in issues)
        )
        lines = [
            f"- {i.identifier}: {i.title} "
            f"({r.state.name if r.state else 'Unknown'}, {r.assignee.name if r.assignee else 'Unassigned'})"
            for i, r in zip(issues, rels)
        ]
        return {
            "text": "Recent Linear Issues:\n" + "\n".join(lines),
            "data": {"issues": [i.summary() for i in issues]},
        }
    except Exception as e:
        log_event(logger, "provider_failed", logging.ERROR, provider="issues", error=str(e))
        return {"text": "Error retrieving Linear issues"}


async def teams_provider(runtime: Any) -> dict[str, Any]:
    service = runtime.get_service(SERVICE_NAME)
    if not service:
        return _unavailable()
    try:
        teams = await service.get_teams()
        if not teams:
            return {"text": "No Linear teams found"}
        lines = [
            f"- {t.name} ({t.key}){': ' + t.description if t.description else ''}" for t in teams
        ]
        return {
            "text": "Linear Teams:\n" + "\n".join(lines),
            "data": {"teams": [{"id": t.id, "name": t.name, "key": t.key} for t in teams]},
        }
    except Exception as e:
        log_event(logger, "provider_failed", logging.ERROR, provider="teams", error=str(e))
        return {"text": "Error retrieving Linear teams"}


async def projects_provider(runtime: Any) -> dict[str, Any]:
    service = runtime.get_service(SERVICE_NAME)
    if not service:
        return _unavailable()
    try:
        projects = [p for p in await service.get_projects() if p.state in ACTIVE_PROJECT_STATES]
        if not projects:
            return {"text": "No active Linear projects found"}
        lines = [
            f"- {p.name}: {p.state} ({int(round(p.progress * 100))}% complete)" for p in projects
        ]
        return {
            "text": "Active Linear Projects:\n" + "\n".join(lines),
            "data": {
                "projects": [{"id": p.id, "name": p.name, "state": p.state} for p in projects]
            },
        }
    except Exception as e:
        log_event(logger, "provider_failed", logging.ERROR, provider="projects", error=str(e))
        return {"text": "Error retrieving Linear projects"}


async def activity_provider(runtime: Any) -> dict[str, Any]:
    service = runtime.get_service(SERVICE_NAME)
    if not service:
        return _unavailable()
    activity = service.get_activity_log(RECENT_ACTIVITY_COUNT)
    if not activity:
        return {"text": "No recent Linear activity"}
    lines = [
        f"- {a.timestamp}: {a.action} {a.resource_type} {a.resource_id} "
        f"({'success' if a.success else 'failed'})"
        for a in activity
    ]
    return {
        "text": "Recent Linear Activity:\n" + "\n".join(lines),
        "data": {"activity": [a.to_dict() for a in activity]},
    }
