import asyncio

from conftest import FakeRuntime

from linear_plugin import providers
from linear_plugin.errors import LinearAPIError
from linear_plugin.plugin import ACTIONS, PROVIDERS, get_action, validate


def test_registry_names_all_operations():
    assert set(ACTIONS) == {
        "create-issue",
        "get-issue",
        "update-issue",
        "delete-issue",
        "search-issues",
        "create-comment",
        "list-teams",
        "list-projects",
        "get-activity",
        "clear-activity",
    }
    assert get_action("delete_issue").name == "delete-issue"
    assert get_action("archive-issue").name == "delete-issue"
    assert get_action("nope") is None
    assert set(PROVIDERS) == {"LINEAR_ISSUES", "LINEAR_TEAMS", "LINEAR_PROJECTS", "LINEAR_ACTIVITY"}


def test_validate_requires_service(make_runtime):
    assert validate(make_runtime()) is True
    assert validate(FakeRuntime()) is False


def test_issue_and_team_providers(make_runtime, fake_client):
    rt = make_runtime()
    issues = asyncio.run(providers.issues_provider(rt))
    assert "ENG-123: Fix login button (In Progress, Unassigned)" in issues["text"]
    assert fake_client.searches[-1].order_by == "updatedAt"
    teams = asyncio.run(providers.teams_provider(rt))
    assert "- Engineering (ENG): Core product" in teams["text"]


def test_projects_provider_keeps_active_only(make_runtime):
    out = asyncio.run(providers.projects_provider(make_runtime()))
    assert "Alpha: started (50% complete)" in out["text"]
    assert "Beta" not in out["text"]


def test_activity_provider_reflects_ledger(make_runtime):
    rt = make_runtime()
    assert asyncio.run(providers.activity_provider(rt))["text"] == "No recent Linear activity"
    asyncio.run(rt.get_service("linear").get_teams())
    out = asyncio.run(providers.activity_provider(rt))
    assert "list_teams team all (success)" in out["text"]


def test_providers_degrade_on_failure(make_runtime, fake_client):
    fake_client.fail["teams"] = LinearAPIError("down")
    out = asyncio.run(providers.teams_provider(make_runtime()))
    assert out == {"text": "Error retrieving Linear teams"}
    assert asyncio.run(providers.issues_provider(FakeRuntime())) == {
        "text": "Linear service is not available"
    }
