from sqlalchemy import func, select

from app.cellhub.db import session_scope
from app.cellhub.modules.cells import service as cells_service
from app.cellhub.modules.cells.models import ParticipantCellLink, TransferLog, TransferLogParticipant


def _link(app, participant_id, cell_id):
    with session_scope(app) as s:
        link = s.get(ParticipantCellLink, (participant_id, cell_id))
        return None if link is None else (link.type, link.is_active)


def _count(app, model):
    with session_scope(app) as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


def test_transfer_moves_participants_keeping_type(client, app, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    r = client.post(
        "/api/panel/transfers",
        json={
            "sourceCellId": cells["alfa"],
            "destinationCellId": cells["beta"],
            "participantIds": [people["ana"], people["bruno"]],
        },
        headers=headers_for("admin"),
    )
    assert r.status_code == 201
    transfer_id = r.json["transferId"]

    assert _link(app, people["ana"], cells["alfa"]) == ("member", False)
    assert _link(app, people["ana"], cells["beta"]) == ("member", True)
    assert _link(app, people["bruno"], cells["beta"]) == ("visitor", True)

    with session_scope(app) as s:
        log = s.get(TransferLog, transfer_id)
        assert log.source_cell_id == cells["alfa"]
        assert log.destination_cell_id == cells["beta"]
        assert {p.participant_id for p in log.participants} == {people["ana"], people["bruno"]}


def test_transfer_reactivates_existing_destination_link(client, app, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    with session_scope(app) as s:
        s.add(
            ParticipantCellLink(
                participant_id=people["bruno"],
                cell_id=cells["gama"],
                tenant_id=seeded["tenant_a"],
                type="member",
                is_active=False,
            )
        )

    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": cells["alfa"], "destinationCellId": cells["gama"], "participantIds": [people["bruno"]]},
        headers=headers_for("president"),
    )
    assert r.status_code == 201
    assert _link(app, people["bruno"], cells["gama"]) == ("visitor", True)


def test_transfer_same_cell_rejected(client, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": cells["alfa"], "destinationCellId": cells["alfa"], "participantIds": [people["ana"]]},
        headers=headers_for("admin"),
    )
    assert r.status_code == 400


def test_transfer_requires_participants(client, seeded, headers_for):
    cells = seeded["cells"]
    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": cells["alfa"], "destinationCellId": cells["beta"], "participantIds": []},
        headers=headers_for("admin"),
    )
    assert r.status_code == 400
    assert "participantIds" in r.json["issues"]


def test_transfer_participant_not_in_source(client, app, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    r = client.post(
        "/api/panel/transfers",
        json={
            "sourceCellId": cells["alfa"],
            "destinationCellId": cells["beta"],
            "participantIds": [people["ana"], people["davi"]],
        },
        headers=headers_for("admin"),
    )
    assert r.status_code == 400
    assert _link(app, people["ana"], cells["alfa"]) == ("member", True)
    assert _count(app, TransferLog) == 0


def test_transfer_across_networks_and_outside_tenant(client, app, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": cells["alfa"], "destinationCellId": cells["gama"], "participantIds": [people["ana"]]},
        headers=headers_for("secretary"),
    )
    assert r.status_code == 201

    r = client.post(
        "/api/panel/transfers",
        json={"sourceCellId": cells["beta"], "destinationCellId": cells["b"], "participantIds": [people["carla"]]},
        headers=headers_for("admin"),
    )
    assert r.status_code == 403
    assert _link(app, people["carla"], cells["beta"]) == ("congregated", True)


def test_transfer_forbidden_without_create_permission(client, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    for role in ("pastor", "leader"):
        r = client.post(
            "/api/panel/transfers",
            json={"sourceCellId": cells["alfa"], "destinationCellId": cells["beta"], "participantIds": [people["ana"]]},
            headers=headers_for(role),
        )
        assert r.status_code == 403
        assert r.json["error"] == "forbidden"


def test_transfer_is_atomic(client, app, seeded, headers_for, monkeypatch):
    cells, people = seeded["cells"], seeded["people"]

    def _boom(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(cells_service, "record_event", _boom)

    r = client.post(
        "/api/panel/transfers",
        json={
            "sourceCellId": cells["alfa"],
            "destinationCellId": cells["beta"],
            "participantIds": [people["ana"], people["bruno"]],
        },
        headers=headers_for("admin"),
    )
    assert r.status_code == 500
    assert r.json["error"] == "fatal"

    assert _link(app, people["ana"], cells["alfa"]) == ("member", True)
    assert _link(app, people["bruno"], cells["alfa"]) == ("visitor", True)
    assert _link(app, people["ana"], cells["beta"]) is None
    assert _count(app, TransferLog) == 0
    assert _count(app, TransferLogParticipant) == 0


def test_transfer_context(client, seeded, headers_for):
    cells, people = seeded["cells"], seeded["people"]
    r = client.get("/api/panel/transfers/context", headers=headers_for("pastor"))
    assert r.status_code == 200
    assert {c["id"] for c in r.json["cells"]} == {cells["alfa"], cells["beta"]}
    assert r.json["participants"] == []

    r = client.get(f"/api/panel/transfers/context?sourceCellId={cells['alfa']}", headers=headers_for("pastor"))
    assert r.status_code == 200
    assert [p["id"] for p in r.json["participants"]] == [people["ana"], people["bruno"]]
    assert r.json["participants"][0]["type"] == "member"

    r = client.get(f"/api/panel/transfers/context?sourceCellId={cells['gama']}", headers=headers_for("pastor"))
    assert r.status_code == 403
