"""
Request interpretation: free text -> direct issue id, search criteria, or
"please clarify".

One completion call per request. Missing or malformed model output falls
back to an identifier regex. Searches that match several issues produce a
disambiguation list instead of picking one.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Union

from .logs import log_event
from .models import Issue, SearchFilters
from .prompts import PLACEHOLDER

logger = logging.getLogger(__name__)

ISSUE_ID_RE = re.compile(r"\b([A-Za-z][A-Za-z0-9]*-\d+)\b")
_FENCE_OPEN_RE = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")
_ALL_RE = re.compile(r"\ball\b", re.IGNORECASE)

PRIORITY_WORDS = {
    "none": 0,
    "no priority": 0,
    "urgent": 1,
    "high": 2,
    "normal": 3,
    "medium": 3,
    "low": 4,
}
RECENCY_WORDS = ("latest", "newest", "recent", "most recent", "last", "new")
DEFAULT_RESULT_LIMIT = 10
RECENCY_RESULT_LIMIT = 25
MAX_CANDIDATES = 5


# ----- Result variants -----


@dataclass(frozen=True)
class Resolved:
    issue_id: str


@dataclass(frozen=True)
class Ambiguous:
    candidates: list[Issue]


@dataclass(frozen=True)
class NotFound:
    criteria: dict[str, Any]


@dataclass(frozen=True)
class ParseFailed:
    reason: str


Resolution = Union[Resolved, Ambiguous, NotFound, ParseFailed]


@dataclass(frozen=True)
class Interpretation:
    source: str  # options | model | regex | none
    direct_id: str | None = None
    criteria: dict[str, Any] | None = None
    fields: dict[str, Any] = field(default_factory=dict)


# ----- Parsing helpers -----


def strip_code_fence(text: str) -> str:
    return _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", text, count=1)).strip()


def parse_model_json(response: str | None) -> dict[str, Any] | None:
    if not response or not response.strip():
        return None
    try:
        parsed = json.loads(strip_code_fence(response))
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_issue_id(text: str | None) -> str | None:
    if not text:
        return None
    m = ISSUE_ID_RE.search(text)
    return m.group(1) if m else None


def parse_priority(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        n = int(value)
        return n if 0 <= n <= 4 else None
    s = str(value).strip().lower()
    if s.isdigit():
        return parse_priority(int(s))
    return PRIORITY_WORDS.get(s)


def _as_list(value: Any) -> list[str] | None:
    if value in (None, "", []):
        return None
    items = value if isinstance(value, (list, tuple)) else [value]
    out = [str(v).strip() for v in items if v not in (None, "") and str(v).strip()]
    return out or None


def _clean(d: Any) -> dict[str, Any] | None:
    if not isinstance(d, dict):
        return None
    out = {k: v for k, v in d.items() if v not in (None, "", [], {})}
    return out or None


def asks_for_all(text: str | None) -> bool:
    return bool(text and _ALL_RE.search(text))


def apply_default_team(team: str | None, text: str | None, default_team: str | None) -> str | None:
    """Explicit team wins; the default applies unless the text asks for "all"."""
    if team:
        return team
    if not default_team or asks_for_all(text):
        return None
    return default_team


def _wants_recent(criteria: dict[str, Any]) -> bool:
    recency = criteria.get("recency")
    if isinstance(recency, bool):
        return recency
    if isinstance(recency, str) and recency.strip().lower() in RECENCY_WORDS:
        return True
    sort = criteria.get("sort")
    if isinstance(sort, dict):
        return str(sort.get("field", "")).lower() in ("created", "createdat") and str(
            sort.get("order", "desc")
        ).lower() == "desc"
    return False


def filters_from_criteria(
    criteria: dict[str, Any],
    text: str | None = None,
    default_team: str | None = None,
    limit: int = DEFAULT_RESULT_LIMIT,
) -> SearchFilters:
    query = criteria.get("query") or criteria.get("keywords") or criteria.get("title")
    if isinstance(query, (list, tuple)):
        query = " ".join(str(q) for q in query if q)

    assignees = _as_list(criteria.get("assignees") or criteria.get("assignee"))
    if criteria.get("hasAssignee") is False:
        assignees = (assignees or []) + ["unassigned"]

    priorities = None
    raw = _as_list(criteria.get("priorities") or criteria.get("priority"))
    if raw:
        mapped = [p for p in (parse_priority(r) for r in raw) if p is not None]
        priorities = mapped or None

    teams = _as_list(criteria.get("teams") or criteria.get("team"))
    try:
        n = int(criteria.get("limit") or limit)
    except (TypeError, ValueError):
        n = limit

    order_by = None
    if _wants_recent(criteria):
        order_by = "createdAt"
        n = max(n, RECENCY_RESULT_LIMIT)

    project = criteria.get("project")
    return SearchFilters(
        query=str(query).strip() or None if query else None,
        states=_as_list(criteria.get("states") or criteria.get("state") or criteria.get("status")),
        assignees=assignees,
        labels=_as_list(criteria.get("labels") or criteria.get("label")),
        priorities=priorities,
        team=apply_default_team(teams[0] if teams else None, text, default_team),
        project=str(project) if project else None,
        limit=n,
        order_by=order_by,
    )


# ----- Model call -----


async def ask_model(runtime: Any, text: str, template: str) -> dict[str, Any] | None:
    """Run one completion for `text`; None when unavailable or unparseable."""
    prompt = template.replace(PLACEHOLDER, text)
    try:
        response = await runtime.use_model(prompt)
    except Exception as e:
        log_event(logger, "model_unavailable", logging.WARNING, error=str(e))
        return None
    parsed = parse_model_json(response)
    if parsed is None and response:
        log_event(logger, "model_output_unparseable", logging.WARNING, chars=len(response))
    return parsed


async def interpret(runtime: Any, text: str, template: str) -> Interpretation:
    parsed = await ask_model(runtime, text, template)
    if parsed is not None:
        direct = parsed.get("directId") or parsed.get("issueId")
        direct = str(direct).strip() if direct else None
        criteria = _clean(parsed.get("searchBy"))
        if direct or criteria:
            return Interpretation("model", direct, criteria, parsed)
    fallback = extract_issue_id(text)
    if fallback:
        log_event(logger, "interpret_regex_fallback", issueId=fallback)
        return Interpretation("regex", fallback, None, parsed or {})
    return Interpretation("none", None, None, parsed or {})


def resolve_candidates(issues: list[Issue], criteria: dict[str, Any] | None = None) -> Resolution:
    if not issues:
        return NotFound(criteria or {})
    if len(issues) == 1:
        return Resolved(issues[0].id)
    return Ambiguous(list(issues[:MAX_CANDIDATES]))


async def resolve_issue(
    runtime: Any,
    service: Any,
    text: str,
    template: str,
    options: dict[str, Any] | None = None,
    default_team: str | None = None,
) -> tuple[Resolution, Interpretation]:
    """Turn a request into a target issue without touching remote state."""
    if options and options.get("issueId"):
        interp = Interpretation("options", str(options["issueId"]), None, dict(options))
        return Resolved(interp.direct_id or ""), interp

    interp = await interpret(runtime, text, template)
    if interp.direct_id:
        return Resolved(interp.direct_id), interp
    if interp.criteria:
        filters = filters_from_criteria(interp.criteria, text, default_team)
        issues = await service.search_issues(filters)
        return resolve_candidates(issues, filters.to_dict()), interp
    return ParseFailed("no issue identifier or description found"), interp


def format_disambiguation(candidates: list[tuple[Issue, str | None]], verb: str = "use") -> str:
    lines = [f"I found multiple issues. Which one do you want to {verb}?", ""]
    for i, (issue, status) in enumerate(candidates[:MAX_CANDIDATES], 1):
        lines.append(f"{i}. {issue.identifier}: {issue.title} ({status or 'No state'})")
    lines.append("")
    lines.append("Please reply with the specific issue ID (e.g. ENG-123).")
    return "\n".join(lines)
