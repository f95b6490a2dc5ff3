"""
HTTP tests for the forum endpoints and error mapping.
"""

from fastapi.testclient import TestClient

from main import app


class TestAuthRequired:
    """Forum endpoints reject requests without a valid bearer token."""

    def test_missing_token_401(self, client):
        response = client.get("/posts")
        assert response.status_code == 401
        assert response.json() == {"detail": "No token provided"}

    def test_bad_token_403(self, client):
        response = client.get("/posts", headers={"Authorization": "Bearer not.a.token"})
        assert response.status_code == 403


class TestPostsEndpoints:
    """Test GET/POST /posts and POST /posts/{post_id}/comments."""

    def test_empty_store(self, client, user_headers):
        response = client.get("/posts", headers=user_headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_create_post(self, client, user_headers):
        response = client.post("/posts", json={"content": "First!"}, headers=user_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["content"] == "First!"
        assert data["author_type"] == "User"
        assert data["author"]["name"] == "Ana Patient"
        assert data["comments"] == []
        assert isinstance(data["id"], str)
        assert "_id" not in data

    def test_timestamps_carry_utc_offset(self, client, user_headers):
        data = client.post("/posts", json={"content": "when?"}, headers=user_headers).json()
        assert data["created_at"].endswith("+00:00")

    def test_create_post_empty_400(self, client, db, user_headers):
        for body in ({}, {"content": ""}):
            response = client.post("/posts", json=body, headers=user_headers)
            assert response.status_code == 400
            assert response.json() == {"detail": "Post content cannot be empty"}
        assert db["post"].count_documents({}) == 0

    def test_thread_round_trip(self, client, user_headers, doctor_headers):
        post_id = client.post("/posts", json={"content": "Is this rash serious?"}, headers=user_headers).json()["id"]

        answer = client.post(f"/posts/{post_id}/comments", json={"content": "Send a photo"}, headers=doctor_headers)
        assert answer.status_code == 201
        answer = answer.json()
        assert answer["author"]["specialization"] == "Cardiology"
        assert answer["parent_comment"] is None

        reply = client.post(
            f"/posts/{post_id}/comments",
            json={"content": "Attached", "parentCommentId": answer["id"]},
            headers=user_headers,
        )
        assert reply.status_code == 201
        assert reply.json()["parent_comment"] == answer["id"]

        thanks = client.post(
            f"/posts/{post_id}/comments",
            json={"content": "Looks fine", "parent_comment_id": reply.json()["id"]},
            headers=doctor_headers,
        )
        assert thanks.status_code == 201

        posts = client.get("/posts", headers=user_headers).json()
        assert len(posts) == 1
        top = posts[0]["comments"]
        assert [c["content"] for c in top] == ["Send a photo"]
        assert top[0]["replies"][0]["content"] == "Attached"
        assert top[0]["replies"][0]["replies"][0]["content"] == "Looks fine"
        assert "specialization" not in top[0]["replies"][0]["author"]

    def test_comment_empty_400(self, client, user_headers):
        post_id = client.post("/posts", json={"content": "hi"}, headers=user_headers).json()["id"]
        response = client.post(f"/posts/{post_id}/comments", json={"content": "  "}, headers=user_headers)
        assert response.status_code == 400

    def test_comment_unknown_post_404(self, client, user_headers):
        response = client.post("/posts/64b000000000000000000000/comments", json={"content": "hi"}, headers=user_headers)
        assert response.status_code == 404
        assert response.json() == {"detail": "Post not found"}

    def test_get_comment(self, client, user_headers):
        post_id = client.post("/posts", json={"content": "hi"}, headers=user_headers).json()["id"]
        comment_id = client.post(f"/posts/{post_id}/comments", json={"content": "c"}, headers=user_headers).json()["id"]

        response = client.get(f"/comments/{comment_id}", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["content"] == "c"
        assert client.get("/comments/nope", headers=user_headers).status_code == 404


class TestErrorMapping:
    """Unexpected failures and a missing store map to generic responses."""

    def test_store_unavailable_500(self, monkeypatch, user_headers):
        import database

        monkeypatch.setattr(database, "db", None)
        response = TestClient(app).get("/posts", headers=user_headers)
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

    def test_unexpected_error_500(self, monkeypatch, user_headers):
        import forum

        def boom():
            raise RuntimeError("kaboom")

        monkeypatch.setattr(forum, "list_posts", boom)
        response = TestClient(app, raise_server_exceptions=False).get("/posts", headers=user_headers)
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "DocDor backend is running"}

    def test_database_report(self, client):
        data = client.get("/test").json()
        assert data["connection_status"] == "Connected"


class TestOrphanSweep:
    """Comments whose linkage step never ran are re-linked by the sweep."""

    def _orphan(self, client, db, headers):
        post_id = client.post("/posts", json={"content": "q"}, headers=headers).json()["id"]
        client.post(f"/posts/{post_id}/comments", json={"content": "lost"}, headers=headers)
        db["post"].update_many({}, {"$set": {"comments": []}})

    def test_reconcile_endpoint(self, client, db, user_headers, doctor_headers):
        self._orphan(client, db, user_headers)

        response = client.post("/forum/reconcile", headers=doctor_headers)
        assert response.status_code == 200
        assert response.json() == {"repaired": 1}
        assert client.get("/posts", headers=user_headers).json()[0]["comments"][0]["content"] == "lost"

    def test_reconcile_requires_doctor(self, client, user_headers):
        assert client.post("/forum/reconcile", headers=user_headers).status_code == 403

    def test_runs_on_startup(self, client, db, user_headers):
        self._orphan(client, db, user_headers)

        with TestClient(app) as started:
            posts = started.get("/posts", headers=user_headers).json()
        assert [c["content"] for c in posts[0]["comments"]] == ["lost"]

    def test_startup_without_store(self, monkeypatch, db):
        import database

        monkeypatch.setattr(database, "db", None)
        with TestClient(app) as started:
            assert started.get("/").status_code == 200
