import asyncio

from conftest import FakeRuntime

from linear_plugin import actions
from linear_plugin.errors import LinearAPIError
from linear_plugin.models import Issue


def run(coro):
    return asyncio.run(coro)


# ----- create-issue -----


def test_create_issue_without_model_uses_default_team_and_normal_priority(
    make_runtime, fake_client, callback
):
    rt = make_runtime(default_team="ENG")
    res = run(
        actions.create_issue(
            rt, "Create a new issue: Fix login button not working on mobile devices", None, callback
        )
    )
    assert res.success is True
    data = fake_client.created[0]
    assert data.title == "Fix login button not working on mobile devices"
    assert data.team_id == "team-eng"
    assert data.priority == 3
    assert callback.texts == [res.text]
    assert "Created issue ENG-201" in res.text
    assert res.data["issue"]["identifier"] == "ENG-201"


def test_create_issue_from_model_resolves_names(make_runtime, fake_client, callback):
    rt = make_runtime(
        [
            {
                "title": "Crash on save",
                "description": "Saving crashes the editor",
                "teamKey": "Design",
                "priority": "high",
                "assignee": "john",
                "labels": ["Bug"],
            }
        ],
        default_team="ENG",
    )
    res = run(actions.create_issue(rt, "Design should fix the crash on save, high priority", None, callback))
    assert res.success is True
    data = fake_client.created[0]
    assert data.team_id == "team-des"
    assert data.priority == 2
    assert data.assignee_id == "user-john"
    assert data.label_ids == ["lb-bug"]


def test_create_issue_all_skips_default_team(make_runtime, fake_client):
    fake_client.teams_.reverse()
    rt = make_runtime(default_team="ENG")
    run(actions.create_issue(rt, "Create an issue for all teams: update the handbook"))
    # falls back to the first team the workspace returns
    assert fake_client.created[0].team_id == "team-des"


def test_create_issue_options_bypass_model(make_runtime, fake_client):
    rt = make_runtime()
    res = run(actions.create_issue(rt, "", {"title": "Direct", "teamId": "team-eng", "priority": 1}))
    assert res.success is True
    assert rt.prompts == []
    assert fake_client.created[0].priority == 1


def test_create_issue_declined_by_model(make_runtime, fake_client, callback):
    rt = make_runtime([{"shouldCreate": False}])
    res = run(actions.create_issue(rt, "hmm", None, callback))
    assert res.success is False
    assert fake_client.created == []


def test_create_issue_keeps_no_priority(make_runtime, fake_client):
    rt = make_runtime()
    run(actions.create_issue(rt, "", {"title": "Someday", "teamId": "team-eng", "priority": 0}))
    assert fake_client.created[0].priority == 0


# ----- get-issue -----


def test_get_issue_by_regex_fallback(make_runtime, callback):
    rt = make_runtime()
    res = run(actions.get_issue(rt, "Show me issue ENG-123", None, callback))
    assert res.success is True
    assert "ENG-123: Fix login button" in res.text
    assert "Status: In Progress" in res.text
    assert res.data["issue"]["team"]["key"] == "ENG"


def test_get_issue_ambiguous_lists_candidates(make_runtime, fake_client, callback):
    fake_client.search_results = [
        fake_client.add_issue(f"iss-{i}", f"ENG-{i}", f"Login issue {i}") for i in (1, 2, 3)
    ]
    rt = make_runtime([{"searchBy": {"title": "login"}}])
    res = run(actions.get_issue(rt, "the login issue", None, callback))
    assert res.data["multipleResults"] is True
    assert len(res.data["issues"]) == 3
    assert "Which one do you want to view?" in callback.texts[0]
    assert "1. ENG-1: Login issue 1 (Todo)" in callback.texts[0]


def test_get_issue_not_found(make_runtime, fake_client, callback):
    fake_client.search_results = []
    rt = make_runtime([{"searchBy": {"title": "unicorn"}}])
    res = run(actions.get_issue(rt, "the unicorn issue", None, callback))
    assert res.success is False
    assert "No issues found" in callback.texts[0]


def test_get_issue_unknown_id_fails_gracefully(make_runtime, callback):
    rt = make_runtime()
    res = run(actions.get_issue(rt, "Show ENG-999", None, callback))
    assert res.success is False
    assert res.text.startswith("❌ Failed to get issue:")


# ----- update-issue -----


def test_update_issue_title_from_text(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(
        actions.update_issue(
            rt, 'Update issue ENG-123 title to "Fix login button on all devices"', None, callback
        )
    )
    assert res.success is True
    issue_id, data = fake_client.updated[0]
    assert issue_id == "iss-123"
    assert data.title == "Fix login button on all devices"
    assert res.data["updates"] == ["title"]


def test_update_issue_model_status_and_assignee(make_runtime, fake_client):
    rt = make_runtime([{"directId": "ENG-123", "updates": {"status": "Done", "assignee": "me"}}])
    res = run(actions.update_issue(rt, "close ENG-123 and take it"))
    assert res.success is True
    _, data = fake_client.updated[0]
    assert data.state_id == "st-done"
    assert data.assignee_id == "user-me"


def test_update_issue_without_changes_asks(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(actions.update_issue(rt, "Update ENG-123", None, callback))
    assert res.success is False
    assert fake_client.updated == []
    assert "What would you like to change on ENG-123?" in callback.texts[0]


def test_update_issue_text_with_status_and_priority(make_runtime, fake_client):
    rt = make_runtime()
    res = run(actions.update_issue(rt, "Update ENG-123: set status to Done and priority to high"))
    assert res.success is True
    _, data = fake_client.updated[0]
    assert data.state_id == "st-done"
    assert data.priority == 2


def test_update_issue_unknown_status_names_it(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(actions.update_issue(rt, "Update ENG-123 status to Limbo", None, callback))
    assert res.success is False
    assert fake_client.updated == []
    assert 'Unknown status "Limbo"' in res.text
    assert res.data["unresolved"] == ['status "Limbo"']


def test_update_issue_reports_names_left_unchanged(make_runtime, fake_client):
    rt = make_runtime(
        [{"directId": "ENG-123", "updates": {"title": "Renamed", "status": "Limbo", "labels": ["Bug", "Nope"]}}]
    )
    res = run(actions.update_issue(rt, "rename ENG-123, move it to limbo, tag bug and nope"))
    assert res.success is True
    _, data = fake_client.updated[0]
    assert data.title == "Renamed"
    assert data.state_id is None
    assert data.label_ids == ["lb-bug"]
    assert 'Not changed: unknown status "Limbo", unknown label "Nope"' in res.text


# ----- delete-issue -----


def test_delete_issue_archives_by_stable_id(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(actions.delete_issue(rt, "Delete issue ENG-123", None, callback))
    assert res.success is True
    assert fake_client.archived == ["iss-123"]
    assert "archived issue ENG-123" in res.text
    service = rt.get_service("linear")
    entry = service.get_activity_log(filter={"action": "delete_issue"})[0]
    assert entry.resource_id == "iss-123"
    assert entry.success is True


def test_delete_issue_ambiguous_deletes_nothing(make_runtime, fake_client, callback):
    fake_client.search_results = [
        Issue(id="a", identifier="ENG-1", title="Old bug", state_id="st-todo"),
        Issue(id="b", identifier="ENG-2", title="Older bug", state_id="st-todo"),
    ]
    rt = make_runtime([{"searchBy": {"title": "bug"}}])
    run(actions.delete_issue(rt, "delete the bug", None, callback))
    assert fake_client.archived == []
    assert "Which one do you want to delete?" in callback.texts[0]


def test_delete_issue_remote_failure(make_runtime, fake_client, callback):
    fake_client.fail["archive_issue"] = LinearAPIError("boom", status=500)
    rt = make_runtime()
    res = run(actions.delete_issue(rt, "Delete issue ENG-123", None, callback))
    assert res.success is False
    assert "Failed to delete issue" in callback.texts[0]
    entry = rt.get_service("linear").get_activity_log()[-1]
    assert entry.success is False
    assert entry.error == "boom"


# ----- search-issues -----


def test_search_all_drops_default_team(make_runtime, fake_client, callback):
    rt = make_runtime([{"states": ["Todo"], "labels": ["Bug"]}], default_team="ENG")
    res = run(actions.search_issues(rt, "Show me all open bugs", None, callback))
    assert res.success is True
    f = fake_client.searches[-1]
    assert f.team is None
    assert f.states == ["Todo"]
    assert "Found 1 issue" in res.text
    assert "Status: In Progress" in res.text


def test_search_my_issues_applies_default_team_and_me(make_runtime, fake_client):
    rt = make_runtime([{"assignees": ["me"]}], default_team="ENG")
    run(actions.search_issues(rt, "my issues"))
    f = fake_client.searches[-1]
    assert f.team == "ENG"
    assert f.assignees == ["me@example.com"]


def test_search_without_model_uses_text_query(make_runtime, fake_client):
    rt = make_runtime()
    run(actions.search_issues(rt, "login"))
    assert fake_client.searches[-1].query == "login"
    assert fake_client.searches[-1].limit == 10


def test_search_options_filters_and_limit(make_runtime, fake_client):
    rt = make_runtime()
    run(actions.search_issues(rt, "", {"filters": {"state": "Todo", "team": "DES"}, "limit": 3}))
    f = fake_client.searches[-1]
    assert (f.states, f.team, f.limit) == (["Todo"], "DES", 3)
    assert rt.prompts == []


def test_search_no_results(make_runtime, fake_client, callback):
    fake_client.search_results = []
    rt = make_runtime()
    res = run(actions.search_issues(rt, "nothing", None, callback))
    assert res.success is True
    assert res.data["count"] == 0


# ----- create-comment -----


def test_comment_from_text(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(actions.create_comment(rt, "Comment on ENG-123: This looks good to me", None, callback))
    assert res.success is True
    assert fake_client.comments[0].issue_id == "iss-123"
    assert fake_client.comments[0].body == "This looks good to me"


def test_comment_ambiguous_posts_nothing(make_runtime, fake_client, callback):
    fake_client.search_results = [
        Issue(id="a", identifier="ENG-1", title="Login"),
        Issue(id="b", identifier="ENG-2", title="Login page"),
    ]
    rt = make_runtime([{"searchBy": {"title": "login"}, "commentBody": "hi"}])
    run(actions.create_comment(rt, "tell the login issue hi", None, callback))
    assert fake_client.comments == []


def test_comment_without_body_asks(make_runtime, fake_client, callback):
    rt = make_runtime()
    res = run(actions.create_comment(rt, "Comment on ENG-123", None, callback))
    assert res.success is False
    assert fake_client.comments == []


# ----- teams / projects -----


def test_list_teams(make_runtime, callback):
    rt = make_runtime()
    res = run(actions.list_teams(rt, "Show me all teams", None, callback))
    assert res.data["count"] == 2
    assert "Engineering (ENG)" in res.text


def test_list_specific_team_with_details(make_runtime, callback):
    rt = make_runtime([{"specificTeam": "ENG"}])
    res = run(actions.list_teams(rt, "tell me about ENG", None, callback))
    assert res.data["count"] == 1
    assert res.data["teams"][0]["memberCount"] == 2
    assert "Team members: Me Myself, John Doe" in res.text


def test_list_projects_default_team_and_all(make_runtime):
    rt = make_runtime(default_team="ENG")
    scoped = run(actions.list_projects(rt, "list projects"))
    assert [p["name"] for p in scoped.data["projects"]] == ["Alpha"]
    everything = run(actions.list_projects(rt, "Show me all projects"))
    assert [p["name"] for p in everything.data["projects"]] == ["Alpha", "Beta"]


# ----- activity -----


def test_get_and_clear_activity(make_runtime, callback):
    rt = make_runtime()
    for _ in range(12):
        run(actions.get_issue(rt, "Show me issue ENG-123"))
    res = run(actions.get_activity(rt, "show activity", None, callback))
    assert res.data["count"] == 12
    assert len(res.data["activity"]) == 10
    assert res.text.count("get_issue issue ENG-123") == 10

    cleared = run(actions.clear_activity(rt, "clear it", None, callback))
    assert cleared.success is True
    empty = run(actions.get_activity(rt, "", None, callback))
    assert empty.data == {"activity": [], "count": 0}


def test_missing_service_fails(callback):
    rt = FakeRuntime()
    res = run(actions.get_activity(rt, "", None, callback))
    assert res.success is False
    assert "Linear service not available" in res.text
