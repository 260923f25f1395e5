"""Identifier validation for body fields, query args and URL arguments."""
import pytest

from app.cellhub.db import session_scope
from app.cellhub.errors import ValidationFailed
from app.cellhub.modules.cells.models import ParticipantCellLink
from app.cellhub.utils import MAX_ID, clean_id, path_id

TOO_BIG = 10**20


@pytest.mark.parametrize("raw,expected", [(1, 1), (42, 42), ("7", 7), (" 12 ", 12), (MAX_ID, MAX_ID)])
def test_clean_id_accepts_integers_and_digit_strings(raw, expected):
    errors = {}
    assert clean_id({"id": raw}, "id", errors) == expected
    assert errors == {}


@pytest.mark.parametrize(
    "raw",
    [5.9, 5.0, float("inf"), float("nan"), True, False, 0, -3, MAX_ID + 1, TOO_BIG, "1.5", "-1", "abc", "1e3", "12345678901234567890", [1], {"id": 1}],
)
def test_clean_id_rejects_malformed_or_out_of_range(raw):
    errors = {}
    assert clean_id({"id": raw}, "id", errors) is None
    assert errors == {"id": "Identificador invalido."}


def test_path_id_bounds():
    assert path_id(5) == 5
    with pytest.raises(ValidationFailed) as exc:
        path_id(TOO_BIG, "participantId")
    assert set(exc.value.issues) == {"participantId"}
    with pytest.raises(ValidationFailed):
        path_id(0)


def test_promote_rejects_fractional_and_infinite_cell_id(client, app, seeded, headers_for):
    h = headers_for("leader")
    url = f"/api/panel/leader/components/{seeded['people']['bruno']}/promote"

    r = client.post(url, json={"cellId": seeded["cells"]["alfa"] + 0.9}, headers=h)
    assert r.status_code == 400
    assert "cellId" in r.json["issues"]

    r = client.post(url, data='{"cellId": 1e400}', content_type="application/json", headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "validation_failed"

    with session_scope(app) as s:
        link = s.get(ParticipantCellLink, (seeded["people"]["bruno"], seeded["cells"]["alfa"]))
        assert link.type == "visitor"


def test_huge_body_ids_are_validation_errors(client, seeded, headers_for):
    h = headers_for("admin")
    r = client.post(
        "/api/panel/president/gd",
        json={"leaderName": "Joao", "meetingDate": "2026-03-10", "networkId": TOO_BIG},
        headers=h,
    )
    assert r.status_code == 400
    assert "networkId" in r.json["issues"]

    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": seeded["cells"]["alfa"], "destinationCellId": TOO_BIG, "participantIds": [seeded["people"]["ana"]]},
        headers=h,
    )
    assert r.status_code == 400


@pytest.mark.parametrize("value", ["abc", "1.5", "99999999999999999999"])
def test_transfer_context_rejects_bad_query_id(client, headers_for, value):
    r = client.get(f"/api/panel/transfers/context?sourceCellId={value}", headers=headers_for("admin"))
    assert r.status_code == 400
    assert "sourceCellId" in r.json["issues"]


def test_huge_path_ids_are_validation_errors(client, seeded, headers_for):
    h = headers_for("admin")
    assert client.get(f"/api/panel/consolidation/{TOO_BIG}", headers=h).status_code == 400
    assert client.put(f"/api/panel/consolidation/{TOO_BIG}", json={}, headers=h).status_code == 400
    r = client.post(
        f"/api/panel/leader/components/{TOO_BIG}/promote",
        json={"cellId": seeded["cells"]["alfa"]},
        headers=h,
    )
    assert r.status_code == 400
    assert "participantId" in r.json["issues"]


def test_email_recipients_count_is_bounded(client, headers_for):
    r = client.post(
        "/api/panel/email/send",
        json={"targetGroup": "todos", "subject": "Culto", "messageHtml": "<p>Oi</p>", "recipientsCount": TOO_BIG},
        headers=headers_for("admin"),
    )
    assert r.status_code == 400
    assert "recipientsCount" in r.json["issues"]
