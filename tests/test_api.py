import main

TEACHER = {"name": "Budi Santoso", "gender": "male", "unit": "SMP", "className": "7A", "subject": "IPA",
           "position": "Wali Kelas"}


def _create_teacher(client, headers, **overrides):
    res = client.post("/teachers", json={**TEACHER, **overrides}, headers=headers)
    assert res.status_code == 200
    return res.json()["id"]


def test_root(client):
    assert client.get("/").json() == {"message": "SiPeNa API ready"}


def test_login_rejects_bad_credentials(client):
    res = client.post("/login", json={"username": "admin", "password": "x"})
    assert res.status_code == 401


def test_reads_require_session(client):
    assert client.get("/teachers").status_code == 401


def test_guest_cannot_write(client, guest_headers):
    assert client.get("/teachers", headers=guest_headers).status_code == 200
    assert client.post("/teachers", json=TEACHER, headers=guest_headers).status_code == 403


def test_logout_invalidates_token(client, admin_headers):
    assert client.post("/logout", headers=admin_headers).status_code == 200
    assert client.get("/teachers", headers=admin_headers).status_code == 401


def test_teacher_lifecycle(client, admin_headers):
    tid = _create_teacher(client, admin_headers)
    [t] = client.get("/teachers", headers=admin_headers).json()
    assert t["id"] == tid
    assert t["status"] == "active"

    assert client.post(f"/teachers/{tid}/archive", headers=admin_headers).status_code == 200
    assert client.get("/teachers", headers=admin_headers).json() == []
    [archived] = client.get("/teachers/archived", headers=admin_headers).json()
    assert archived["archivedDate"]

    client.post(f"/teachers/{tid}/unarchive", headers=admin_headers)
    assert client.get("/teachers/archived", headers=admin_headers).json() == []

    client.put(f"/teachers/{tid}", json={**TEACHER, "subject": "Matematika"}, headers=admin_headers)
    assert client.get("/teachers", headers=admin_headers).json()[0]["subject"] == "Matematika"

    assert client.delete(f"/teachers/{tid}", headers=admin_headers).status_code == 200
    assert client.delete(f"/teachers/{tid}", headers=admin_headers).status_code == 404


def test_archive_unknown_teacher_is_404(client, admin_headers):
    res = client.post("/teachers/65a000000000000000000000/archive", headers=admin_headers)
    assert res.status_code == 404


def test_supervision_grade_and_unit_derived(client, admin_headers):
    tid = _create_teacher(client, admin_headers)
    payload = {"teacherId": tid, "teacherName": "Budi Santoso", "date": "2024-01-15", "score": 91, "grade": "D"}
    res = client.post("/supervisions/kbm", json=payload, headers=admin_headers)
    assert res.json()["grade"] == "A"
    assert res.json()["unit"] == "SMP"

    assert len(client.get("/supervisions/kbm?unit=SMP", headers=admin_headers).json()) == 1
    assert client.get("/supervisions/kbm?unit=RA", headers=admin_headers).json() == []
    assert client.get("/supervisions/admin", headers=admin_headers).json() == []


def test_unknown_supervision_kind(client, admin_headers):
    assert client.get("/supervisions/monthly", headers=admin_headers).status_code == 422


def test_note_delete_with_literal_undefined(client, admin_headers):
    res = client.delete("/notes/undefined", headers=admin_headers)
    assert res.status_code == 400


def test_notes_flow(client, admin_headers):
    payload = {"teacherId": "t1", "teacherName": "Budi", "date": "2024-02-01", "categories": ["Pengembangan Diri"],
               "note": "Ikut pelatihan"}
    nid = client.post("/notes", json=payload, headers=admin_headers).json()["id"]
    client.put(f"/notes/{nid}", json={**payload, "note": "Selesai pelatihan"}, headers=admin_headers)
    [n] = client.get("/notes", headers=admin_headers).json()
    assert n["note"] == "Selesai pelatihan"
    assert client.delete(f"/notes/{nid}", headers=admin_headers).status_code == 200
    assert client.get("/notes", headers=admin_headers).json() == []


def test_dashboard_and_recent_updates(client, admin_headers, guest_headers):
    tid = _create_teacher(client, admin_headers, unit="SD")
    base = {"teacherId": tid, "teacherName": "Budi Santoso"}
    client.post("/supervisions/admin", json={**base, "date": "2024-01-05", "score": 80}, headers=admin_headers)
    client.post("/supervisions/admin", json={**base, "date": "2024-01-20", "score": 90}, headers=admin_headers)
    client.post("/supervisions/classic", json={**base, "date": "2024-02-02", "score": 70}, headers=admin_headers)

    dash = client.get("/dashboard", headers=guest_headers).json()
    assert dash["teacherCount"] == 1
    assert dash["supervisionCounts"] == {"admin": 2, "kbm": 0, "classic": 1}
    assert dash["gradeDistribution"] == {"A": 0, "B": 1, "C": 1, "D": 1}
    assert dash["trends"]["labels"] == ["Jan 2024", "Feb 2024"]
    assert dash["trends"]["adminAvg"] == [85.0, 0]

    assert client.get("/dashboard?unit=RA", headers=guest_headers).json()["teacherCount"] == 0

    recent = client.get("/recent-updates", headers=guest_headers).json()
    assert [u["date"] for u in recent] == ["2024-02-02", "2024-01-20", "2024-01-05"]


def test_export_csv(client, admin_headers):
    _create_teacher(client, admin_headers)
    res = client.get("/export/teachers.csv", headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "daftar_guru_supervisi_" in res.headers["content-disposition"]
    assert "Budi Santoso" in res.text


def test_database_unavailable(client, admin_headers, monkeypatch):
    main.app.dependency_overrides.clear()
    monkeypatch.setattr(main.database, "db", None)
    assert client.get("/teachers", headers=admin_headers).status_code == 500


def test_put_cannot_unarchive_teacher(client, admin_headers):
    tid = _create_teacher(client, admin_headers)
    client.post(f"/teachers/{tid}/archive", headers=admin_headers)

    res = client.put(f"/teachers/{tid}", json={**TEACHER, "archived": False}, headers=admin_headers)
    assert res.status_code == 200

    assert client.get("/teachers", headers=admin_headers).json() == []
    [t] = client.get("/teachers/archived", headers=admin_headers).json()
    assert t["id"] == tid
    assert t["archivedDate"]


def test_repeated_logins_reuse_one_token_per_role(client):
    tokens = {client.post("/login/guest").json()["token"] for _ in range(20)}
    assert len(tokens) == 1
    for _ in range(3):
        client.post("/login", json={"username": "admin", "password": "sipena25"})
    assert len(main.SESSIONS) == 2


def test_supervision_rejects_non_iso_date(client, admin_headers):
    payload = {"teacherId": "t1", "teacherName": "Budi", "date": "kemarin", "score": 80}
    assert client.post("/supervisions/admin", json=payload, headers=admin_headers).status_code == 422
    assert client.get("/supervisions/admin", headers=admin_headers).json() == []
