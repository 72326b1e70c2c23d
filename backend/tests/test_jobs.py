import pytest
from sqlalchemy import update

from compliance.errors import ConflictingTransition, ValidationError
from compliance.models.job import Job, Quote
from compliance.services import job_service
from compliance.services.identity_service import Principal


class JobHelpers:
    def _create_job(self, client, user, title="Auditoría de seguridad", **extra):
        r = client.post("/api/jobs", json={"title": title, **extra}, headers=user.headers)
        assert r.status_code == 201, r.text
        return r.json()

    def _quote(self, client, pro, job_id, amount=1000):
        return client.post(f"/api/jobs/{job_id}/quotes", json={"amount": amount}, headers=pro.headers)


class TestJobs(JobHelpers):
    def test_create_job(self, client, owner):
        job = self._create_job(client, owner, description="Revisión anual")
        assert job["status"] == "POR_REVISAR"
        assert job["user_id"] == owner.id
        assert job["quote_currency"] == "CLP"

    def test_only_users_create_jobs(self, client, professional):
        r = client.post("/api/jobs", json={"title": "x"}, headers=professional.headers)
        assert r.status_code == 403

    def test_blank_title(self, client, owner):
        r = client.post("/api/jobs", json={"title": "  "}, headers=owner.headers)
        assert r.status_code == 400

    def test_adopts_only_own_loose_files(self, client, owner, make_user):
        other = make_user()
        mine = client.post("/api/files/upload", files={"file": ("a.pdf", b"%PDF a", "application/pdf")},
                           headers=owner.headers).json()
        theirs = client.post("/api/files/upload", files={"file": ("b.pdf", b"%PDF b", "application/pdf")},
                             headers=other.headers).json()
        job = self._create_job(client, owner, file_ids=[mine["id"], theirs["id"], "missing"])

        detail = client.get(f"/api/jobs/{job['id']}", headers=owner.headers).json()
        assert [f["id"] for f in detail["files"]] == [mine["id"]]
        assert client.get(f"/api/files/{theirs['id']}", headers=other.headers).json()["job_id"] is None

    def test_visibility(self, client, owner, professional, admin, make_user):
        other = make_user()
        job = self._create_job(client, owner)
        self._create_job(client, other)

        assert len(client.get("/api/jobs", headers=owner.headers).json()) == 1
        assert len(client.get("/api/jobs", headers=professional.headers).json()) == 2
        assert len(client.get("/api/jobs", headers=admin.headers).json()) == 2
        assert client.get(f"/api/jobs/{job['id']}", headers=other.headers).status_code == 404
        assert client.get(f"/api/jobs/{job['id']}", headers=professional.headers).status_code == 200

    def test_list_filters(self, client, owner, professional):
        first = self._create_job(client, owner, title="uno")
        self._create_job(client, owner, title="dos")
        self._quote(client, professional, first["id"])

        r = client.get("/api/jobs?status=COTIZACION", headers=owner.headers)
        assert [j["id"] for j in r.json()] == [first["id"]]
        r = client.get("/api/jobs?limit=1", headers=owner.headers)
        assert [j["title"] for j in r.json()] == ["dos"]
        assert client.get("/api/jobs?status=BOGUS", headers=owner.headers).status_code == 400


class TestQuotes(JobHelpers):
    def test_start_review(self, client, owner, professional):
        job = self._create_job(client, owner)
        r = client.post(f"/api/jobs/{job['id']}/start-review", headers=professional.headers)
        assert r.json()["status"] == "REVISION_EN_PROGRESO"
        r = client.post(f"/api/jobs/{job['id']}/start-review", headers=professional.headers)
        assert r.status_code == 200
        assert r.json()["status"] == "REVISION_EN_PROGRESO"

    def test_users_cannot_review_or_quote(self, client, owner):
        job = self._create_job(client, owner)
        assert client.post(f"/api/jobs/{job['id']}/start-review", headers=owner.headers).status_code == 403
        assert self._quote(client, owner, job["id"]).status_code == 403

    def test_quote_moves_job_to_cotizacion(self, client, owner, professional):
        job = self._create_job(client, owner)
        r = self._quote(client, professional, job["id"])
        assert r.status_code == 201
        assert r.json()["status"] == "PENDING"
        detail = client.get(f"/api/jobs/{job['id']}", headers=owner.headers).json()
        assert detail["job"]["status"] == "COTIZACION"
        assert len(detail["quotes"]) == 1

    @pytest.mark.parametrize("amount", [0, -10])
    def test_quote_amount_must_be_positive(self, client, owner, professional, amount):
        job = self._create_job(client, owner)
        assert self._quote(client, professional, job["id"], amount).status_code == 400

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
    def test_quote_amount_must_be_finite(self, client, owner, professional, raw):
        job = self._create_job(client, owner)
        r = client.post(f"/api/jobs/{job['id']}/quotes", content=f'{{"amount": {raw}}}',
                        headers={**professional.headers, "Content-Type": "application/json"})
        assert r.status_code == 400
        assert "amount" in r.json()["details"]
        detail = client.get(f"/api/jobs/{job['id']}", headers=owner.headers).json()
        assert detail["quotes"] == []

    def test_service_rejects_non_finite_amount(self, client, owner, professional, db):
        job = self._create_job(client, owner)
        principal = Principal(professional.id, professional.email, "professional")
        with pytest.raises(ValidationError):
            job_service.create_quote(db, principal, job["id"], float("nan"))
        with pytest.raises(ValidationError):
            job_service.create_quote(db, principal, job["id"], float("inf"))

    def test_accept_rejects_siblings(self, client, owner, professional, make_user):
        other_pro = make_user("professional")
        job = self._create_job(client, owner)
        chosen = self._quote(client, professional, job["id"], 1000).json()
        sibling = self._quote(client, other_pro, job["id"], 1500).json()

        r = client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": chosen["id"]},
                        headers=owner.headers)
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "TRABAJO_EN_PROGRESO"
        assert data["professional_id"] == professional.id
        assert data["quote_amount"] == 1000
        assert data["accepted_at"]

        quotes = {q["id"]: q["status"] for q in
                  client.get(f"/api/jobs/{job['id']}", headers=owner.headers).json()["quotes"]}
        assert quotes == {chosen["id"]: "ACCEPTED", sibling["id"]: "REJECTED"}

        r = client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": sibling["id"]},
                        headers=owner.headers)
        assert r.status_code == 409
        assert r.json()["error"] == "ConflictingTransition"

    def test_no_quotes_after_acceptance(self, client, owner, professional):
        job = self._create_job(client, owner)
        quote = self._quote(client, professional, job["id"]).json()
        client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": quote["id"]},
                    headers=owner.headers)
        r = self._quote(client, professional, job["id"])
        assert r.status_code == 409

    def test_accept_unknown_quote(self, client, owner, professional):
        job = self._create_job(client, owner)
        other_job = self._create_job(client, owner, title="otro")
        quote = self._quote(client, professional, other_job["id"]).json()
        r = client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": quote["id"]},
                        headers=owner.headers)
        assert r.status_code == 404

    def test_only_requester_accepts(self, client, owner, professional, make_user):
        other = make_user()
        job = self._create_job(client, owner)
        quote = self._quote(client, professional, job["id"]).json()
        r = client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": quote["id"]},
                        headers=other.headers)
        assert r.status_code == 404
        r = client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": quote["id"]},
                        headers=professional.headers)
        assert r.status_code == 403


class TestFinish(JobHelpers):
    def _accepted_job(self, client, owner, professional):
        job = self._create_job(client, owner)
        quote = self._quote(client, professional, job["id"]).json()
        client.post(f"/api/jobs/{job['id']}/accept-quote", json={"quote_id": quote["id"]},
                    headers=owner.headers)
        return job

    def test_finish_is_idempotent(self, client, owner, professional):
        job = self._accepted_job(client, owner, professional)
        r = client.post(f"/api/jobs/{job['id']}/finish", headers=professional.headers)
        assert r.json()["status"] == "FINALIZADO"
        finished_at = r.json()["finished_at"]
        assert finished_at

        r = client.post(f"/api/jobs/{job['id']}/finish", headers=professional.headers)
        assert r.status_code == 200
        assert r.json()["status"] == "FINALIZADO"
        assert r.json()["finished_at"] == finished_at

    def test_finish_before_acceptance(self, client, owner, professional):
        job = self._create_job(client, owner)
        r = client.post(f"/api/jobs/{job['id']}/finish", headers=professional.headers)
        assert r.status_code == 409

    def test_only_assigned_professional(self, client, owner, professional, admin, make_user):
        job = self._accepted_job(client, owner, professional)
        stranger = make_user("professional")
        assert client.post(f"/api/jobs/{job['id']}/finish", headers=stranger.headers).status_code == 403
        assert client.post(f"/api/jobs/{job['id']}/finish", headers=owner.headers).status_code == 403
        assert client.post(f"/api/jobs/{job['id']}/finish", headers=admin.headers).status_code == 200


class TestGuardedTransitions(JobHelpers):
    def test_stale_accept_loses(self, client, owner, professional, db):
        """The second accept finds its quote already rejected by the first."""
        job = self._create_job(client, owner)
        first = self._quote(client, professional, job["id"]).json()
        second = self._quote(client, professional, job["id"], 2000).json()
        principal = Principal(owner.id, owner.email, "user")

        job_service.accept_quote(db, principal, job["id"], first["id"])
        with pytest.raises(ConflictingTransition):
            job_service.accept_quote(db, principal, job["id"], second["id"])

        detail = client.get(f"/api/jobs/{job['id']}", headers=owner.headers).json()
        assert detail["job"]["professional_id"] == professional.id
        assert detail["job"]["quote_amount"] == 1000

    def test_job_moved_between_read_and_accept(self, client, owner, professional, db, test_db,
                                               monkeypatch):
        job = self._create_job(client, owner)
        quote = self._quote(client, professional, job["id"]).json()
        principal = Principal(owner.id, owner.email, "user")

        load_job = job_service._load_job

        def load_then_move(session, who, job_id):
            loaded = load_job(session, who, job_id)
            other = test_db()
            try:
                other.execute(
                    update(Job).where(Job.id == job_id).values(status=job_service.FINALIZADO)
                )
                other.commit()
            finally:
                other.close()
            return loaded

        monkeypatch.setattr(job_service, "_load_job", load_then_move)
        with pytest.raises(ConflictingTransition):
            job_service.accept_quote(db, principal, job["id"], quote["id"])

        check = test_db()
        try:
            assert check.get(Quote, quote["id"]).status == job_service.QUOTE_PENDING
            stored = check.get(Job, job["id"])
            assert stored.status == job_service.FINALIZADO
            assert stored.professional_id is None
        finally:
            check.close()
