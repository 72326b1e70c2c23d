PDF = b"%PDF-1.4 attachment"


class TestFiles:
    def _upload(self, client, user, name="plano.pdf", content=PDF, mime="application/pdf", **data):
        return client.post("/api/files/upload", files={"file": (name, content, mime)},
                           data=data, headers=user.headers)

    def test_upload_metadata(self, client, owner):
        r = self._upload(client, owner, name="../Plano final.pdf")
        assert r.status_code == 201
        data = r.json()
        assert data["uploaded_by"] == owner.id
        assert data["storage_key"].startswith(f"{owner.id}/")
        assert data["storage_key"].endswith("-Plano_final.pdf")
        assert data["size"] == len(PDF)
        assert data["status"] == "POR_REVISAR"
        assert data["version"] == 1

    def test_keys_are_unique(self, client, owner):
        keys = {self._upload(client, owner).json()["storage_key"] for _ in range(5)}
        assert len(keys) == 5

    def test_rejects_unsupported_type(self, client, owner):
        r = self._upload(client, owner, name="x.exe", mime="application/x-msdownload")
        assert r.status_code == 415

    def test_rejects_empty(self, client, owner):
        r = self._upload(client, owner, content=b"")
        assert r.status_code == 400

    def test_rejects_oversize(self, client, owner, monkeypatch):
        from compliance.config import settings

        monkeypatch.setattr(settings, "max_upload_bytes", 8)
        assert self._upload(client, owner).status_code == 413

    def test_attach_to_own_job(self, client, owner):
        job = client.post("/api/jobs", json={"title": "t"}, headers=owner.headers).json()
        r = self._upload(client, owner, job_id=job["id"])
        assert r.json()["job_id"] == job["id"]

    def test_cannot_attach_to_foreign_job(self, client, owner, make_user):
        other = make_user()
        job = client.post("/api/jobs", json={"title": "t"}, headers=other.headers).json()
        assert self._upload(client, owner, job_id=job["id"]).status_code == 404

    def test_download_own_file(self, client, owner):
        record = self._upload(client, owner).json()
        r = client.get(f"/api/files/{record['id']}/download", headers=owner.headers)
        assert r.status_code == 200
        assert r.content == PDF
        assert r.headers["content-type"] == "application/pdf"
        assert 'filename="plano.pdf"' in r.headers["content-disposition"]

    def test_user_cannot_download_others_file(self, client, owner, make_user):
        other = make_user()
        record = self._upload(client, owner).json()
        assert client.get(f"/api/files/{record['id']}/download", headers=other.headers).status_code == 404
        assert client.get(f"/api/files/{record['id']}", headers=other.headers).status_code == 404

    def test_professional_can_download(self, client, owner, professional):
        record = self._upload(client, owner).json()
        r = client.get(f"/api/files/{record['id']}/download", headers=professional.headers)
        assert r.status_code == 200

    def test_upload_is_audited(self, client, owner, db):
        from compliance.models.audit import AuditLog

        record = self._upload(client, owner).json()
        entry = db.query(AuditLog).filter(AuditLog.resource_id == record["id"]).one()
        assert entry.action == "FILE_UPLOAD"
        assert entry.user_id == owner.id
        assert entry.ip_address == "testclient"
