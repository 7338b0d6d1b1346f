from fastapi.testclient import TestClient

from appraisal_service.main import app
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.notification_event import NotificationEvent
from appraisal_service.models.review import Review
from tests.helpers import auth, create_cycle, create_employee, create_hr, create_user

HR = "hr@local.test"


def cycle_payload(**overrides):
    body = {
        "name": "FY26 Annual Review",
        "cycle_type": "ANNUAL",
        "review_period_start": "2026-01-01",
        "review_period_end": "2026-12-31",
        "cycle_start": "2026-01-01",
        "cycle_end": "2026-12-31",
    }
    body.update(overrides)
    return body


def test_create_cycle_requires_hr(db_session):
    create_user(db_session, "user@local.test")

    client = TestClient(app)
    r = client.post("/appraisals/cycles", headers=auth("user@local.test"), json=cycle_payload())
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


def test_create_cycle_is_draft(db_session):
    create_hr(db_session)

    client = TestClient(app)
    r = client.post("/appraisals/cycles", headers=auth(HR), json=cycle_payload())
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "DRAFT"
    assert body["warnings"] == []
    assert body["peer_review"] is False


def test_create_cycle_validation(db_session):
    create_hr(db_session)
    client = TestClient(app)

    r = client.post("/appraisals/cycles", headers=auth(HR), json=cycle_payload(name="   "))
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = client.post(
        "/appraisals/cycles",
        headers=auth(HR),
        json=cycle_payload(review_period_start="2026-12-31", review_period_end="2026-01-01"),
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "review_period_end"

    r = client.post(
        "/appraisals/cycles",
        headers=auth(HR),
        json=cycle_payload(peer_review=True, min_peer_reviewers=3, max_peer_reviewers=2),
    )
    assert r.status_code == 400

    r = client.post(
        "/appraisals/cycles",
        headers=auth(HR),
        json=cycle_payload(peer_review=True, min_peer_reviewers=1, max_peer_reviewers=11),
    )
    assert r.status_code == 400


def test_cycle_needs_self_or_manager_review(db_session):
    create_hr(db_session)
    client = TestClient(app)

    r = client.post(
        "/appraisals/cycles",
        headers=auth(HR),
        json=cycle_payload(
            self_review=False, manager_review=False, peer_review=True, min_peer_reviewers=1, max_peer_reviewers=2
        ),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Enable at least one of self review or manager review"

    r = client.post("/appraisals/cycles", headers=auth(HR), json=cycle_payload(self_review=False))
    assert r.status_code == 201
    cycle_id = r.json()["id"]

    r = client.patch(f"/appraisals/cycles/{cycle_id}", headers=auth(HR), json={"manager_review": False})
    assert r.status_code == 400


def test_review_period_outside_cycle_is_a_warning(db_session):
    create_hr(db_session)

    client = TestClient(app)
    r = client.post(
        "/appraisals/cycles",
        headers=auth(HR),
        json=cycle_payload(review_period_start="2025-12-01", cycle_start="2026-01-01"),
    )
    assert r.status_code == 201
    assert r.json()["warnings"] == ["Review period starts before the cycle window"]


def test_cycle_lifecycle(db_session):
    create_hr(db_session)
    client = TestClient(app)

    r = client.post("/appraisals/cycles", headers=auth(HR), json=cycle_payload())
    cycle_id = r.json()["id"]

    # update allowed in draft
    r = client.patch(f"/appraisals/cycles/{cycle_id}", headers=auth(HR), json={"name": "FY26 Reviews"})
    assert r.status_code == 200
    assert r.json()["name"] == "FY26 Reviews"

    # close before activation is rejected
    r = client.post(f"/appraisals/cycles/{cycle_id}/close", headers=auth(HR))
    assert r.status_code == 409

    r = client.post(f"/appraisals/cycles/{cycle_id}/activate", headers=auth(HR))
    assert r.status_code == 200
    assert r.json()["status"] == "ACTIVE"

    r = client.get("/appraisals/cycles/active", headers=auth(HR))
    assert [c["id"] for c in r.json()] == [cycle_id]

    # no edits once active
    r = client.patch(f"/appraisals/cycles/{cycle_id}", headers=auth(HR), json={"name": "Nope"})
    assert r.status_code == 409

    r = client.post(f"/appraisals/cycles/{cycle_id}/close", headers=auth(HR))
    assert r.status_code == 200
    assert r.json()["status"] == "CLOSED"

    r = client.get("/appraisals/cycles?status=CLOSED", headers=auth(HR))
    assert [c["id"] for c in r.json()] == [cycle_id]


def test_activation_fans_out_appraisals_and_review_shells(db_session):
    hr = create_hr(db_session)
    boss = create_employee(db_session, "E001", "Boss")
    alice = create_employee(db_session, "E002", "Alice", manager=boss)
    create_employee(db_session, "E003", "Gone", manager=boss, is_active=False)
    cycle = create_cycle(db_session, hr, peer_review=True, min_peer_reviewers=2, max_peer_reviewers=4)

    client = TestClient(app)
    r = client.post(f"/appraisals/cycles/{cycle.id}/activate", headers=auth(HR))
    assert r.status_code == 200
    assert r.json()["appraisals_created"] == 2

    appraisals = {a.employee_id: a for a in db_session.query(Appraisal).filter(Appraisal.cycle_id == cycle.id)}
    assert set(appraisals) == {boss.id, alice.id}

    a = appraisals[alice.id]
    assert a.status == "NOT_STARTED"
    assert a.manager_id == boss.id
    assert a.peer_reviews_required == 2

    shells = db_session.query(Review).filter(Review.appraisal_id == a.id).all()
    assert {(s.reviewer_type, s.reviewer_id, s.status) for s in shells} == {
        ("SELF", alice.id, "DRAFT"),
        ("MANAGER", boss.id, "DRAFT"),
    }

    # boss has no manager, so only a SELF shell
    boss_shells = db_session.query(Review).filter(Review.appraisal_id == appraisals[boss.id].id).all()
    assert [s.reviewer_type for s in boss_shells] == ["SELF"]

    notified = db_session.query(NotificationEvent).filter(NotificationEvent.event_type == "APPRAISAL_STARTED").count()
    assert notified == 2


def test_reactivation_is_rejected(db_session):
    hr = create_hr(db_session)
    create_employee(db_session, "E001", "Alice")
    cycle = create_cycle(db_session, hr)

    client = TestClient(app)
    assert client.post(f"/appraisals/cycles/{cycle.id}/activate", headers=auth(HR)).status_code == 200

    r = client.post(f"/appraisals/cycles/{cycle.id}/activate", headers=auth(HR))
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_STATE"
    assert db_session.query(Appraisal).filter(Appraisal.cycle_id == cycle.id).count() == 1


def test_unknown_cycle_is_404(db_session):
    create_hr(db_session)

    client = TestClient(app)
    r = client.get("/appraisals/cycles/00000000-0000-0000-0000-000000000000", headers=auth(HR))
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_cycle_appraisals_scoped_to_viewer(db_session):
    hr = create_hr(db_session)
    boss = create_employee(db_session, "E001", "Boss")
    alice = create_employee(db_session, "E002", "Alice", manager=boss)
    bob = create_employee(db_session, "E003", "Bob")
    cycle = create_cycle(db_session, hr)

    client = TestClient(app)
    client.post(f"/appraisals/cycles/{cycle.id}/activate", headers=auth(HR))

    r = client.get(f"/appraisals/cycles/{cycle.id}/appraisals", headers=auth(HR))
    assert len(r.json()) == 3

    r = client.get(f"/appraisals/cycles/{cycle.id}/appraisals", headers=auth("e001@local.test"))
    assert {a["employee_id"] for a in r.json()} == {str(boss.id), str(alice.id)}

    r = client.get(f"/appraisals/cycles/{cycle.id}/appraisals", headers=auth("e003@local.test"))
    assert [a["employee_id"] for a in r.json()] == [str(bob.id)]
    assert r.json()[0]["completion_pct"] == 0.0
