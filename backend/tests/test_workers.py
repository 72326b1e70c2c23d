from compliance.models.document import WorkerDocument

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestWorkers:
    def test_create_worker(self, client, owner, worker, company):
        assert worker["rut"] == "12.345.678-5"
        assert worker["company_id"] == company["id"]
        assert worker["status"] == "ACTIVE"

    def test_duplicate_worker_rut(self, client, owner, company, worker):
        r = client.post("/api/workers", json={
            "company_id": company["id"], "first_name": "Otra", "last_name": "Persona",
            "rut": "12345678-5",
        }, headers=owner.headers)
        assert r.status_code == 409
        assert r.json()["code"] == "DuplicateWorkerRut"

    def test_create_in_foreign_company(self, client, company, make_user):
        other = make_user()
        r = client.post("/api/workers", json={
            "company_id": company["id"], "first_name": "X", "last_name": "Y", "rut": "1-9",
        }, headers=other.headers)
        assert r.status_code == 404

    def test_missing_names(self, client, owner, company):
        r = client.post("/api/workers", json={
            "company_id": company["id"], "first_name": "", "last_name": " ", "rut": "1-9",
        }, headers=owner.headers)
        assert r.status_code == 400
        assert set(r.json()["details"]) == {"first_name", "last_name"}

    def test_list_requires_company(self, client, owner):
        r = client.get("/api/workers", headers=owner.headers)
        assert r.status_code == 400

    def test_update_worker(self, client, owner, worker):
        r = client.put(f"/api/workers/{worker['id']}", json={"job_title": "Operador", "email": None},
                       headers=owner.headers)
        assert r.status_code == 200
        assert r.json()["job_title"] == "Operador"
        assert r.json()["first_name"] == "Ana"

    def test_update_worker_bad_status(self, client, owner, worker):
        r = client.put(f"/api/workers/{worker['id']}", json={"status": "SUSPENDED"},
                       headers=owner.headers)
        assert r.status_code == 400

    def test_hard_delete_cascades_documents(self, client, owner, worker, db):
        r = client.post("/api/documents/upload", data={
            "worker_id": worker["id"], "document_type_id": "doctype-contrato",
        }, files={"file": ("contrato.pdf", b"%PDF-1.4 contract", "application/pdf")},
            headers=owner.headers)
        assert r.status_code == 201

        r = client.delete(f"/api/workers/{worker['id']}", headers=owner.headers)
        assert r.status_code == 204
        assert client.get(f"/api/workers/{worker['id']}", headers=owner.headers).status_code == 404
        assert db.query(WorkerDocument).filter(WorkerDocument.worker_id == worker["id"]).count() == 0


class TestWorkerTenancy:
    def test_other_user_cannot_fetch_worker(self, client, worker, make_user):
        other = make_user()
        r = client.get(f"/api/workers/{worker['id']}", headers=other.headers)
        assert r.status_code == 404
        assert "Ana" not in r.text

    def test_other_user_cannot_update_or_delete(self, client, worker, make_user):
        other = make_user()
        assert client.put(f"/api/workers/{worker['id']}", json={"first_name": "Z"},
                          headers=other.headers).status_code == 404
        assert client.delete(f"/api/workers/{worker['id']}", headers=other.headers).status_code == 404

    def test_admin_sees_worker(self, client, worker, admin):
        r = client.get(f"/api/workers/{worker['id']}", headers=admin.headers)
        assert r.status_code == 200


class TestWorkerPhoto:
    def test_upload_and_fetch_photo(self, client, owner, worker, tmp_data):
        r = client.post(f"/api/workers/{worker['id']}/photo",
                        files={"file": ("me.png", PNG, "image/png")}, headers=owner.headers)
        assert r.status_code == 200
        key = r.json()["profile_image_key"]
        assert key.startswith(f"workers/{worker['id']}/")
        assert key.endswith("-me.png")
        assert (tmp_data / "files" / key).exists()

        r = client.get(f"/api/workers/{worker['id']}/photo", headers=owner.headers)
        assert r.status_code == 200
        assert r.content == PNG
        assert r.headers["content-type"] == "image/png"

    def test_replacing_photo_removes_old_object(self, client, owner, worker, tmp_data):
        first = client.post(f"/api/workers/{worker['id']}/photo",
                            files={"file": ("a.png", PNG, "image/png")},
                            headers=owner.headers).json()["profile_image_key"]
        second = client.post(f"/api/workers/{worker['id']}/photo",
                             files={"file": ("b.png", PNG, "image/png")},
                             headers=owner.headers).json()["profile_image_key"]
        assert first != second
        assert not (tmp_data / "files" / first).exists()
        assert (tmp_data / "files" / second).exists()

    def test_photo_must_be_image(self, client, owner, worker):
        r = client.post(f"/api/workers/{worker['id']}/photo",
                        files={"file": ("cv.pdf", b"%PDF", "application/pdf")}, headers=owner.headers)
        assert r.status_code == 415

    def test_photo_size_limit(self, client, owner, worker, monkeypatch):
        from compliance.config import settings

        monkeypatch.setattr(settings, "max_photo_bytes", 10)
        r = client.post(f"/api/workers/{worker['id']}/photo",
                        files={"file": ("big.png", PNG, "image/png")}, headers=owner.headers)
        assert r.status_code == 413

    def test_delete_photo(self, client, owner, worker, tmp_data):
        key = client.post(f"/api/workers/{worker['id']}/photo",
                          files={"file": ("a.png", PNG, "image/png")},
                          headers=owner.headers).json()["profile_image_key"]
        r = client.delete(f"/api/workers/{worker['id']}/photo", headers=owner.headers)
        assert r.status_code == 200
        assert r.json()["profile_image_key"] is None
        assert not (tmp_data / "files" / key).exists()
        assert client.get(f"/api/workers/{worker['id']}/photo", headers=owner.headers).status_code == 404
