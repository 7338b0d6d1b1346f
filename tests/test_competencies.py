from fastapi.testclient import TestClient

from appraisal_service.main import app
from tests.helpers import auth, create_competency, create_hr, create_user

HR = "hr@local.test"


def test_create_competency_normalizes_code(db_session):
    create_hr(db_session)

    client = TestClient(app)
    r = client.post(
        "/appraisals/competencies",
        headers=auth(HR),
        json={"code": " comm ", "name": "Communication", "category": "BEHAVIORAL", "weightage": 20},
    )
    assert r.status_code == 201
    assert r.json()["code"] == "COMM"
    assert r.json()["is_active"] is True


def test_duplicate_code_rejected(db_session):
    create_hr(db_session)
    create_competency(db_session, "COMM")

    client = TestClient(app)
    r = client.post(
        "/appraisals/competencies",
        headers=auth(HR),
        json={"code": "comm", "name": "Communication", "category": "BEHAVIORAL"},
    )
    assert r.status_code == 400
    assert "already exists" in r.json()["detail"]


def test_negative_weightage_rejected(db_session):
    create_hr(db_session)

    client = TestClient(app)
    r = client.post(
        "/appraisals/competencies",
        headers=auth(HR),
        json={"code": "X", "name": "X", "category": "TECHNICAL", "weightage": -1},
    )
    assert r.status_code == 400


def test_only_hr_can_create(db_session):
    create_user(db_session, "user@local.test")

    client = TestClient(app)
    r = client.post(
        "/appraisals/competencies",
        headers=auth("user@local.test"),
        json={"code": "X", "name": "X", "category": "TECHNICAL"},
    )
    assert r.status_code == 403


def test_list_is_ordered_and_filterable(db_session):
    create_hr(db_session)
    b = create_competency(db_session, "BETA")
    a = create_competency(db_session, "ALPHA")
    create_competency(db_session, "OLD", is_active=False)

    b.display_order = 1
    a.display_order = 2
    db_session.commit()

    client = TestClient(app)
    r = client.get("/appraisals/competencies", headers=auth(HR))
    assert [c["code"] for c in r.json()] == ["OLD", "BETA", "ALPHA"]

    r = client.get("/appraisals/competencies?active_only=true", headers=auth(HR))
    assert [c["code"] for c in r.json()] == ["BETA", "ALPHA"]


def test_update_deactivates(db_session):
    create_hr(db_session)
    c = create_competency(db_session, "COMM")

    client = TestClient(app)
    r = client.patch(
        f"/appraisals/competencies/{c.id}",
        headers=auth(HR),
        json={"is_active": False, "weightage": 30},
    )
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    assert r.json()["weightage"] == 30


def test_duplicate_code_leaves_session_usable(db_session):
    create_hr(db_session)
    create_competency(db_session, "COMM")

    client = TestClient(app)
    body = {"code": "COMM", "name": "Communication again", "category": "BEHAVIORAL"}
    assert client.post("/appraisals/competencies", headers=auth(HR), json=body).status_code == 400

    body = {"code": "CRAFT", "name": "Craft", "category": "TECHNICAL"}
    r = client.post("/appraisals/competencies", headers=auth(HR), json=body)
    assert r.status_code == 201

    codes = [c["code"] for c in client.get("/appraisals/competencies", headers=auth(HR)).json()]
    assert sorted(codes) == ["COMM", "CRAFT"]
