from fastapi.testclient import TestClient

from appraisal_service.main import app
from appraisal_service.models.goal import Goal
from appraisal_service.models.goal_template import GoalTemplate
from tests.helpers import auth, create_cycle, create_employee, create_goal, create_hr, email_of


def setup(db_session, **goal_kwargs):
    hr = create_hr(db_session)
    boss = create_employee(db_session, "M001", "Manager")
    alice = create_employee(db_session, "E001", "Alice", manager=boss)
    cycle = create_cycle(db_session, hr, status="ACTIVE")
    goal = create_goal(db_session, employee=alice, manager=boss, cycle=cycle, **goal_kwargs)
    return boss, alice, cycle, goal


def submit(client, emp, goal, **body):
    return client.put(f"/goal-templates/goals/{goal.id}/submit", headers=auth(email_of(emp)), json=body)


def test_achieved_equal_to_target_is_full_progress(db_session):
    _, alice, _, goal = setup(db_session, target_value=40)

    client = TestClient(app)
    r = submit(client, alice, goal, achieved_value=40, self_comments="Done")
    assert r.status_code == 200
    body = r.json()
    assert body["progress_pct"] == 100
    assert body["employee_submitted"] is True
    assert body["status"] == "IN_PROGRESS"
    assert body["self_comments"] == "Done"
    assert r.headers["ETag"] == f'"{body["version"]}"'


def test_zero_achieved_is_zero_progress(db_session):
    _, alice, _, goal = setup(db_session, target_value=40)

    client = TestClient(app)
    r = submit(client, alice, goal, achieved_value=0)
    assert r.json()["progress_pct"] == 0


def test_explicit_progress_wins(db_session):
    _, alice, _, goal = setup(db_session, target_value=40)

    client = TestClient(app)
    r = submit(client, alice, goal, achieved_value=10, progress_pct=80)
    assert r.json()["progress_pct"] == 80
    assert r.json()["achieved_value"] == 10


def test_progress_without_target_keeps_previous_value(db_session):
    _, alice, _, goal = setup(db_session, target_value=None, progress_pct=30)

    client = TestClient(app)
    r = submit(client, alice, goal, achieved_value=12)
    assert r.json()["progress_pct"] == 30


def test_progress_pct_out_of_range_is_rejected(db_session):
    _, alice, _, goal = setup(db_session)

    client = TestClient(app)
    r = submit(client, alice, goal, progress_pct=120)
    assert r.status_code == 422


def test_only_assignee_can_submit(db_session):
    boss, _, _, goal = setup(db_session)

    client = TestClient(app)
    r = submit(client, boss, goal, achieved_value=5)
    assert r.status_code == 403


def test_stale_if_match_is_rejected(db_session):
    _, alice, _, goal = setup(db_session)

    client = TestClient(app)
    r = submit(client, alice, goal, achieved_value=50)
    version = r.json()["version"]

    r = client.put(
        f"/goal-templates/goals/{goal.id}/submit",
        headers={**auth(email_of(alice)), "If-Match": f'"{version - 1}"'},
        json={"achieved_value": 60},
    )
    assert r.status_code == 409
    assert "Stale version" in r.json()["detail"]

    r = client.put(
        f"/goal-templates/goals/{goal.id}/submit",
        headers={**auth(email_of(alice)), "If-Match": str(version)},
        json={"achieved_value": 60},
    )
    assert r.status_code == 200
    assert r.json()["progress_pct"] == 60


def test_approve_sets_completed_at_full_progress(db_session):
    boss, alice, _, goal = setup(db_session)

    client = TestClient(app)
    # not submitted yet
    r = client.put(f"/goal-templates/goals/{goal.id}/approve", headers=auth(email_of(boss)), json={})
    assert r.status_code == 409

    submit(client, alice, goal, achieved_value=100)
    r = client.put(
        f"/goal-templates/goals/{goal.id}/approve",
        headers=auth(email_of(boss)),
        json={"comment": "Great quarter"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["manager_approved"] is True
    assert body["status"] == "COMPLETED"
    assert body["manager_comments"] == "Great quarter"

    # approved goals are frozen for the employee
    r = submit(client, alice, goal, achieved_value=90)
    assert r.status_code == 409


def test_approve_partial_progress_stays_in_progress(db_session):
    boss, alice, _, goal = setup(db_session)

    client = TestClient(app)
    submit(client, alice, goal, achieved_value=70)
    r = client.put(f"/goal-templates/goals/{goal.id}/approve", headers=auth(email_of(boss)))
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"


def test_only_manager_can_approve(db_session):
    _, alice, _, goal = setup(db_session)
    stranger = create_employee(db_session, "E999", "Stranger")

    client = TestClient(app)
    submit(client, alice, goal, achieved_value=70)
    r = client.put(f"/goal-templates/goals/{goal.id}/approve", headers=auth(email_of(stranger)), json={})
    assert r.status_code == 403


def test_reject_clears_submission_and_resubmit_clears_reason(db_session):
    boss, alice, _, goal = setup(db_session)

    client = TestClient(app)
    submit(client, alice, goal, achieved_value=70)

    r = client.put(f"/goal-templates/goals/{goal.id}/reject", headers=auth(email_of(boss)), json={"reason": "  "})
    assert r.status_code == 400

    r = client.put(
        f"/goal-templates/goals/{goal.id}/reject",
        headers=auth(email_of(boss)),
        json={"reason": "Evidence missing"},
    )
    assert r.status_code == 200
    assert r.json()["employee_submitted"] is False
    assert r.json()["rejection_reason"] == "Evidence missing"

    # nothing to reject any more
    r = client.put(f"/goal-templates/goals/{goal.id}/reject", headers=auth(email_of(boss)), json={"reason": "again"})
    assert r.status_code == 409

    r = submit(client, alice, goal, achieved_value=75)
    assert r.json()["employee_submitted"] is True
    assert r.json()["rejection_reason"] is None


def _lock_goal_template(db_session, goal, boss, cycle):
    t = GoalTemplate(owner_employee_id=boss.id, cycle_id=cycle.id, name="Locked", status="LOCKED")
    db_session.add(t)
    db_session.flush()
    goal.template_id = t.id
    db_session.commit()


def test_locked_template_blocks_submit_and_reject(db_session):
    boss, alice, cycle, goal = setup(db_session)
    client = TestClient(app)
    submit(client, alice, goal, achieved_value=50)
    _lock_goal_template(db_session, goal, boss, cycle)

    r = submit(client, alice, goal, achieved_value=60)
    assert r.status_code == 409
    assert r.json()["code"] == "TEMPLATE_LOCKED"

    r = client.put(f"/goal-templates/goals/{goal.id}/reject", headers=auth(email_of(boss)), json={"reason": "no"})
    assert r.json()["code"] == "TEMPLATE_LOCKED"

    # approval of already submitted work still goes through
    r = client.put(f"/goal-templates/goals/{goal.id}/approve", headers=auth(email_of(boss)), json={})
    assert r.status_code == 200


def test_adhoc_goal_for_direct_report(db_session):
    boss, alice, cycle, _ = setup(db_session)
    outsider = create_employee(db_session, "E500", "Outsider")

    client = TestClient(app)
    r = client.post(
        "/goals",
        headers=auth(email_of(boss)),
        json={"assigned_to": str(alice.id), "cycle_id": str(cycle.id), "title": "Mentor a new hire", "weightage": 20},
    )
    assert r.status_code == 201
    assert r.json()["template_id"] is None
    assert r.json()["pillar"] == "CUSTOM"

    r = client.post(
        "/goals",
        headers=auth(email_of(boss)),
        json={"assigned_to": str(outsider.id), "title": "Not yours"},
    )
    assert r.status_code == 403

    r = client.get("/goals/team", headers=auth(email_of(boss)))
    assert len(r.json()) == 2

    r = client.get(f"/goal-templates/my-goals?cycle_id={cycle.id}", headers=auth(email_of(alice)))
    assert {g["title"] for g in r.json()} == {"Ship it", "Mentor a new hire"}


def test_goal_status_changes(db_session):
    boss, alice, _, goal = setup(db_session)

    client = TestClient(app)
    r = client.put(f"/goals/{goal.id}/status", headers=auth(email_of(boss)), json={"status": "ON_HOLD"})
    assert r.status_code == 200
    assert r.json()["status"] == "ON_HOLD"

    r = client.put(f"/goals/{goal.id}/status", headers=auth(email_of(alice)), json={"status": "IN_PROGRESS"})
    assert r.status_code == 403

    r = client.put(f"/goals/{goal.id}/status", headers=auth(email_of(boss)), json={"status": "CANCELLED"})
    assert r.status_code == 200

    # cancelled is final and blocks further submissions
    r = client.put(f"/goals/{goal.id}/status", headers=auth(email_of(boss)), json={"status": "IN_PROGRESS"})
    assert r.status_code == 409
    r = submit(client, alice, goal, achieved_value=10)
    assert r.status_code == 409


def test_bulk_create_is_all_or_nothing(db_session):
    boss, alice, cycle, _ = setup(db_session)
    bob = create_employee(db_session, "E002", "Bob", manager=boss)
    outsider = create_employee(db_session, "E009", "Outsider")

    client = TestClient(app)
    r = client.post(
        "/goals/bulk",
        headers=auth(email_of(boss)),
        json={"goals": [
            {"assigned_to": str(alice.id), "cycle_id": str(cycle.id), "title": "Mentor", "weightage": 40},
            {"assigned_to": str(outsider.id), "title": "Not mine"},
        ]},
    )
    assert r.status_code == 403
    assert db_session.query(Goal).filter(Goal.title == "Mentor").count() == 0

    r = client.post(
        "/goals/bulk",
        headers=auth(email_of(boss)),
        json={"goals": [
            {"assigned_to": str(alice.id), "cycle_id": str(cycle.id), "title": "Mentor", "weightage": 40},
            {"assigned_to": str(bob.id), "cycle_id": str(cycle.id), "title": "Automate", "weightage": 60},
        ]},
    )
    assert r.status_code == 201
    assert [g["title"] for g in r.json()] == ["Mentor", "Automate"]

    assert client.post("/goals/bulk", headers=auth(email_of(boss)), json={"goals": []}).status_code == 400


def test_goals_by_employee_visibility(db_session):
    boss, alice, _, goal = setup(db_session)
    bob = create_employee(db_session, "E002", "Bob", manager=boss)

    client = TestClient(app)
    url = f"/goals/employee/{alice.id}"
    for viewer in (email_of(alice), email_of(boss), "hr@local.test"):
        r = client.get(url, headers=auth(viewer))
        assert r.status_code == 200
        assert [g["id"] for g in r.json()] == [str(goal.id)]

    assert client.get(url, headers=auth(email_of(bob))).status_code == 403


def test_goals_by_cycle_scoped_to_viewer(db_session):
    boss, alice, cycle, goal = setup(db_session)
    bob = create_employee(db_session, "E002", "Bob", manager=boss)
    bob_goal = create_goal(db_session, employee=bob, manager=boss, cycle=cycle, title="Bob's")

    client = TestClient(app)
    url = f"/goals/cycle/{cycle.id}"
    assert {g["id"] for g in client.get(url, headers=auth("hr@local.test")).json()} == {str(goal.id), str(bob_goal.id)}
    assert {g["id"] for g in client.get(url, headers=auth(email_of(boss))).json()} == {str(goal.id), str(bob_goal.id)}
    assert [g["id"] for g in client.get(url, headers=auth(email_of(alice))).json()] == [str(goal.id)]


def test_manager_comment(db_session):
    boss, alice, _, goal = setup(db_session)

    client = TestClient(app)
    url = f"/goals/{goal.id}/comment"
    r = client.put(url, headers=auth(email_of(boss)), json={"manager_comments": "Keep going"})
    assert r.status_code == 200
    assert r.json()["manager_comments"] == "Keep going"

    assert client.put(url, headers=auth(email_of(boss)), json={"manager_comments": "  "}).status_code == 400
    assert client.put(url, headers=auth(email_of(alice)), json={"manager_comments": "Me"}).status_code == 403


def test_delete_goal_before_submission(db_session):
    boss, alice, cycle, goal = setup(db_session)
    submitted = create_goal(db_session, employee=alice, manager=boss, cycle=cycle, title="Reported")

    client = TestClient(app)
    assert client.delete(f"/goals/{goal.id}", headers=auth(email_of(alice))).status_code == 403

    r = client.delete(f"/goals/{goal.id}", headers=auth(email_of(boss)))
    assert r.status_code == 204
    assert db_session.query(Goal).filter(Goal.id == goal.id).count() == 0

    submit(client, alice, submitted, achieved_value=10)
    r = client.delete(f"/goals/{submitted.id}", headers=auth(email_of(boss)))
    assert r.status_code == 409
    assert client.delete(f"/goals/{goal.id}", headers=auth(email_of(boss))).status_code == 404
