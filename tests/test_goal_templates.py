import uuid

from fastapi.testclient import TestClient

from appraisal_service.main import app
from appraisal_service.models.goal import Goal
from appraisal_service.models.notification_event import NotificationEvent
from tests.helpers import auth, create_appraisal, create_cycle, create_employee, create_hr, email_of


def metric(**overrides):
    body = {"pillar": "DELIVERY_EXECUTION", "preset_key": "ON_TIME_DELIVERY", "target_value": 95, "weightage": 50}
    body.update(overrides)
    return body


def setup_team(db_session, reports=2):
    hr = create_hr(db_session)
    boss = create_employee(db_session, "M001", "Manager")
    team = [create_employee(db_session, f"E00{i}", f"Report {i}", manager=boss) for i in range(1, reports + 1)]
    cycle = create_cycle(db_session, hr, status="ACTIVE")
    return boss, team, cycle


def create_template(client, boss, cycle, name="Engineering goals"):
    r = client.post(
        "/goal-templates",
        headers=auth(email_of(boss)),
        json={"cycle_id": str(cycle.id), "name": name, "submission_deadline": "2026-06-30"},
    )
    assert r.status_code == 201
    return r.json()


def test_preset_catalogue(db_session):
    boss, _, _ = setup_team(db_session, reports=0)

    client = TestClient(app)
    r = client.get("/goal-templates/preset-catalogue", headers=auth(email_of(boss)))
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"DELIVERY_EXECUTION", "QUALITY", "ENGINEERING_EXCELLENCE", "COLLABORATION", "CUSTOM"}
    assert body["CUSTOM"] == []
    assert {"key", "label", "unit"} <= set(body["QUALITY"][0])


def test_metric_label_resolution(db_session):
    boss, _, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric())
    assert r.status_code == 201
    m = r.json()["metrics"][0]
    assert m["label"] == "On-time delivery of committed work"
    assert m["unit"] == "%"
    assert m["position"] == 1

    r = client.post(
        f"/goal-templates/{t['id']}/metrics",
        headers=auth(email_of(boss)),
        json=metric(pillar="CUSTOM", preset_key=None, custom_name="Reduce on-call pages", unit="pages"),
    )
    assert r.status_code == 201
    labels = [m["label"] for m in r.json()["metrics"]]
    assert labels == ["On-time delivery of committed work", "Reduce on-call pages"]
    assert r.json()["weightage"] == {"total": 100, "is_valid": True, "warning": None}


def test_metric_validation(db_session):
    boss, _, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)
    url = f"/goal-templates/{t['id']}/metrics"

    # preset from another pillar
    r = client.post(url, headers=auth(email_of(boss)), json=metric(pillar="QUALITY"))
    assert r.status_code == 400

    # neither preset nor custom name
    r = client.post(url, headers=auth(email_of(boss)), json=metric(preset_key=None, custom_name="  "))
    assert r.status_code == 400

    r = client.post(url, headers=auth(email_of(boss)), json=metric(weightage=0))
    assert r.status_code == 400
    r = client.post(url, headers=auth(email_of(boss)), json=metric(weightage=101))
    assert r.status_code == 400


def test_bulk_add_is_all_or_nothing(db_session):
    boss, _, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(
        f"/goal-templates/{t['id']}/metrics/bulk",
        headers=auth(email_of(boss)),
        json={"metrics": [metric(), metric(pillar="QUALITY", preset_key="NOT_A_PRESET")]},
    )
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Metric #2")

    r = client.get(f"/goal-templates/{t['id']}", headers=auth(email_of(boss)))
    assert r.json()["metrics"] == []

    r = client.post(
        f"/goal-templates/{t['id']}/metrics/bulk",
        headers=auth(email_of(boss)),
        json={"metrics": [metric(weightage=30), metric(pillar="QUALITY", preset_key="REOPENED_TICKETS", weightage=30)]},
    )
    assert r.status_code == 201
    assert [m["position"] for m in r.json()["metrics"]] == [1, 2]
    assert r.json()["weightage"]["is_valid"] is False
    assert r.json()["weightage"]["total"] == 60
    assert "60%" in r.json()["weightage"]["warning"]


def test_only_owner_can_edit_template(db_session):
    boss, team, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(team[0])), json=metric())
    assert r.status_code == 403


def test_remove_metric(db_session):
    boss, _, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric())
    metric_id = r.json()["metrics"][0]["id"]

    r = client.delete(f"/goal-templates/{t['id']}/metrics/{metric_id}", headers=auth(email_of(boss)))
    assert r.status_code == 200
    assert r.json()["metrics"] == []

    r = client.delete(f"/goal-templates/{t['id']}/metrics/{metric_id}", headers=auth(email_of(boss)))
    assert r.status_code == 404


def test_publish_creates_one_goal_per_metric_and_report(db_session):
    boss, team, cycle = setup_team(db_session, reports=3)
    appraisal = create_appraisal(db_session, cycle, team[0])
    create_employee(db_session, "E009", "Inactive", manager=boss, is_active=False)

    client = TestClient(app)
    t = create_template(client, boss, cycle)
    client.post(
        f"/goal-templates/{t['id']}/metrics/bulk",
        headers=auth(email_of(boss)),
        json={"metrics": [metric(), metric(pillar="QUALITY", preset_key="PRODUCTION_DEFECTS", target_value=0)]},
    )

    r = client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "PUBLISHED"
    assert body["goals_created"] == 6
    assert body["employees_notified"] == 3
    assert body["weightage"]["is_valid"] is True

    goals = db_session.query(Goal).filter(Goal.template_id == uuid.UUID(t["id"])).all()
    assert len(goals) == 6
    assert len({(g.assigned_to, g.metric_id) for g in goals}) == 6
    assert all(g.status == "NOT_STARTED" and g.cycle_id == cycle.id for g in goals)
    assert all(g.assigned_by == boss.id for g in goals)
    linked = [g for g in goals if g.assigned_to == team[0].id]
    assert all(g.appraisal_id == appraisal.id for g in linked)
    assert all(g.appraisal_id is None for g in goals if g.assigned_to != team[0].id)

    events = db_session.query(NotificationEvent).filter(NotificationEvent.event_type == "GOAL_PUBLISHED").all()
    assert {e.recipient_employee_id for e in events} == {e.id for e in team}

    # second publish is rejected and creates nothing
    r = client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))
    assert r.status_code == 409
    assert db_session.query(Goal).filter(Goal.template_id == uuid.UUID(t["id"])).count() == 6


def test_publish_requires_metrics(db_session):
    boss, _, cycle = setup_team(db_session)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))
    assert r.status_code == 400


def test_publish_with_off_weightage_is_allowed(db_session):
    boss, _, cycle = setup_team(db_session, reports=1)
    client = TestClient(app)
    t = create_template(client, boss, cycle)
    client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric(weightage=40))

    r = client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))
    assert r.status_code == 200
    assert r.json()["weightage"]["is_valid"] is False
    assert r.json()["goals_created"] == 1


def test_publish_idempotency_key_replays(db_session):
    boss, _, cycle = setup_team(db_session, reports=2)
    client = TestClient(app)
    t = create_template(client, boss, cycle)
    client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric(weightage=100))

    headers = {**auth(email_of(boss)), "Idempotency-Key": "publish-1"}
    first = client.post(f"/goal-templates/{t['id']}/publish", headers=headers)
    assert first.status_code == 200

    replay = client.post(f"/goal-templates/{t['id']}/publish", headers=headers)
    assert replay.status_code == 200
    assert replay.json() == first.json()
    assert db_session.query(Goal).filter(Goal.template_id == uuid.UUID(t["id"])).count() == 2


def test_lock_requires_published(db_session):
    boss, _, cycle = setup_team(db_session, reports=1)
    client = TestClient(app)
    t = create_template(client, boss, cycle)

    r = client.post(f"/goal-templates/{t['id']}/lock", headers=auth(email_of(boss)))
    assert r.status_code == 409

    client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric(weightage=100))
    client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))

    r = client.post(f"/goal-templates/{t['id']}/lock", headers=auth(email_of(boss)))
    assert r.status_code == 200
    assert r.json()["status"] == "LOCKED"
    assert r.json()["locked_at"] is not None

    # metrics are frozen once the template leaves DRAFT
    r = client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric())
    assert r.status_code == 409


def test_template_listing_and_goals(db_session):
    boss, team, cycle = setup_team(db_session, reports=1)
    client = TestClient(app)
    t = create_template(client, boss, cycle)
    client.post(f"/goal-templates/{t['id']}/metrics", headers=auth(email_of(boss)), json=metric(weightage=100))
    client.post(f"/goal-templates/{t['id']}/publish", headers=auth(email_of(boss)))

    r = client.get("/goal-templates", headers=auth(email_of(boss)))
    assert [x["id"] for x in r.json()] == [t["id"]]

    r = client.get(f"/goal-templates/{t['id']}/goals", headers=auth(email_of(boss)))
    assert [g["assigned_to"] for g in r.json()] == [str(team[0].id)]

    r = client.get(f"/goal-templates/{t['id']}", headers=auth(email_of(team[0])))
    assert r.status_code == 403

    r = client.get(f"/goal-templates/{t['id']}", headers=auth("hr@local.test"))
    assert r.status_code == 200


def test_template_for_closed_cycle_rejected(db_session):
    hr = create_hr(db_session)
    boss = create_employee(db_session, "M001", "Manager")
    cycle = create_cycle(db_session, hr, status="CLOSED")

    client = TestClient(app)
    r = client.post(
        "/goal-templates",
        headers=auth(email_of(boss)),
        json={"cycle_id": str(cycle.id), "name": "Late"},
    )
    assert r.status_code == 409
