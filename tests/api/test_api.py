"""
HTTP-level tests with the store and completion service overridden.
"""

from unittest.mock import AsyncMock

from knowspark.routers.render import MAX_RENDER_CHARS
from knowspark.schemas import Answer, AnswerSection


def _create_project(client, title: str = "Digital Logic", user: str | None = None) -> dict:
    headers = {"X-User-Id": user} if user else {}
    response = client.post("/api/projects", json={"title": title}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _add_question(client, project_id: str, text: str = "Explain a half adder") -> dict:
    response = client.post(f"/api/projects/{project_id}/questions", json={"text": text})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["llm"]["enabled"] is False


class TestAsk:
    def test_ask_returns_structured_answer(self, client, llm) -> None:
        response = client.post("/api/ask", json={"question": "Explain a half adder"})

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Half Adder"
        assert [s["name"] for s in body["sections"]] == ["Overview"]
        llm.complete.assert_awaited_once()

    def test_blank_question_is_rejected(self, client) -> None:
        assert client.post("/api/ask", json={"question": "   "}).status_code == 400
        assert client.post("/api/ask", json={"question": ""}).status_code == 422

    def test_unexpected_failure_returns_error_answer(self, client, llm) -> None:
        llm.generate_answer = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.post("/api/ask", json={"question": "q"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "boom"
        assert body["title"] == "Error"
        assert body["sections"][0] == {"name": "Error", "content": "boom"}

    def test_completion_failure_is_a_normal_error_answer(self, client, llm) -> None:
        llm.complete = AsyncMock(return_value="")

        response = client.post("/api/ask", json={"question": "q"})

        assert response.status_code == 200
        assert response.json()["title"] == "Error"

    def test_analyze(self, client) -> None:
        response = client.post("/api/analyze", json={"question": "Write a program in Python using recursion"})

        assert response.status_code == 200
        body = response.json()
        assert body["topic"] == "programming"
        assert body["language"] == "python"
        assert body["constraints"] == ["using recursion"]


class TestProjects:
    def test_crud(self, client) -> None:
        project = _create_project(client)

        listed = client.get("/api/projects").json()["items"]
        assert [p["id"] for p in listed] == [project["id"]]

        renamed = client.patch(f"/api/projects/{project['id']}", json={"title": "Logic II"})
        assert renamed.status_code == 200
        assert renamed.json()["title"] == "Logic II"

        assert client.get(f"/api/projects/{project['id']}").json()["title"] == "Logic II"
        assert client.delete(f"/api/projects/{project['id']}").status_code == 200
        assert client.get(f"/api/projects/{project['id']}").status_code == 404

    def test_blank_title_is_rejected(self, client) -> None:
        assert client.post("/api/projects", json={"title": "  "}).status_code == 400

    def test_unknown_project_is_404(self, client) -> None:
        assert client.get("/api/projects/missing").status_code == 404
        assert client.patch("/api/projects/missing", json={"title": "x"}).status_code == 404
        assert client.delete("/api/projects/missing").status_code == 404

    def test_projects_are_scoped_to_user(self, client) -> None:
        project = _create_project(client, user="alice")

        assert client.get(f"/api/projects/{project['id']}", headers={"X-User-Id": "bob"}).status_code == 404
        assert client.get("/api/projects", headers={"X-User-Id": "bob"}).json()["items"] == []
        assert client.get(f"/api/projects/{project['id']}", headers={"X-User-Id": "alice"}).status_code == 200

    def test_sync_merges_client_projects(self, client) -> None:
        existing = _create_project(client)

        response = client.post("/api/projects/sync", json={"projects": [{"id": "offline-1", "title": "Offline"}]})

        assert response.status_code == 200
        body = response.json()
        assert body["local_count"] == 1
        assert body["cloud_count"] == 1
        assert body["merged_count"] == 2
        assert {p["id"] for p in body["items"]} == {existing["id"], "offline-1"}
        assert all(p["user_id"] == "local" for p in body["items"])


class TestQuestions:
    def test_add_question_generates_and_stores_answer(self, client) -> None:
        project = _create_project(client)

        question = _add_question(client, project["id"])

        assert question["answer"]["title"] == "Half Adder"
        stored = client.get(f"/api/projects/{project['id']}").json()
        assert stored["questions"][0]["answer"]["title"] == "Half Adder"

    def test_add_question_to_unknown_project(self, client) -> None:
        response = client.post("/api/projects/missing/questions", json={"text": "q"})

        assert response.status_code == 404

    def test_regenerate_replaces_answer(self, client, llm) -> None:
        project = _create_project(client)
        question = _add_question(client, project["id"])
        llm.complete = AsyncMock(return_value="# Half Adder, Revisited\nShorter.")

        response = client.post(f"/api/projects/{project['id']}/questions/{question['id']}/regenerate")

        assert response.status_code == 200
        assert response.json()["answer"]["title"] == "Half Adder, Revisited"
        assert response.json()["answer"]["id"] != question["answer"]["id"]

    def test_concurrent_regenerate_is_rejected(self, client, store) -> None:
        project = _create_project(client)
        question = _add_question(client, project["id"])
        store.begin_generation(question["id"])

        response = client.post(f"/api/projects/{project['id']}/questions/{question['id']}/regenerate")

        assert response.status_code == 409

    def test_answer_for_deleted_question_is_discarded(self, client, store, llm) -> None:
        project = _create_project(client)
        question = _add_question(client, project["id"])

        async def delete_then_answer(text, analysis=None):
            await store.delete_question(project["id"], question["id"])
            return Answer(title="Late", sections=[AnswerSection(name="Overview", content="late")])

        llm.generate_answer = delete_then_answer

        response = client.post(f"/api/projects/{project['id']}/questions/{question['id']}/regenerate")

        assert response.status_code == 404
        assert client.get(f"/api/projects/{project['id']}").json()["questions"] == []

    def test_patch_question(self, client) -> None:
        project = _create_project(client)
        question = _add_question(client, project["id"])
        url = f"/api/projects/{project['id']}/questions/{question['id']}"

        updated = client.patch(url, json={"topic": "Adders"}).json()
        assert updated["topic"] == "Adders"
        assert updated["text"] == "Explain a half adder"

        cleared = client.patch(url, json={"topic": None}).json()
        assert cleared["topic"] is None

        assert client.patch(url, json={"text": "   "}).status_code == 400
        assert client.patch(f"/api/projects/{project['id']}/questions/missing", json={"topic": "x"}).status_code == 404

    def test_delete_question(self, client) -> None:
        project = _create_project(client)
        question = _add_question(client, project["id"])
        url = f"/api/projects/{project['id']}/questions/{question['id']}"

        assert client.delete(url).status_code == 200
        assert client.delete(url).status_code == 404

    def test_reorder_questions(self, client) -> None:
        project = _create_project(client)
        first = _add_question(client, project["id"], "first")
        second = _add_question(client, project["id"], "second")
        third = _add_question(client, project["id"], "third")

        response = client.put(
            f"/api/projects/{project['id']}/questions/order",
            json={"question_ids": [third["id"], first["id"], "ghost"]},
        )

        assert response.status_code == 200
        assert [q["id"] for q in response.json()["questions"]] == [third["id"], first["id"]]
        assert second["id"] not in {q["id"] for q in response.json()["questions"]}


class TestRender:
    def test_render_segments_content(self, client, half_adder_graph) -> None:
        content = "Before $A*B$\n```json\n" + half_adder_graph + "\n```\nAfter"

        response = client.post("/api/render", json={"content": content})

        assert response.status_code == 200
        segments = response.json()["segments"]
        assert [s["kind"] for s in segments] == ["markdown", "diagram", "markdown"]
        assert segments[0]["text"] == "Before $A \\cdot B$"
        assert segments[1]["renderable"] is True
        assert len(segments[1]["graph"]["nodes"]) == 4

    def test_render_rejects_oversized_content(self, client) -> None:
        response = client.post("/api/render", json={"content": "x" * (MAX_RENDER_CHARS + 1)})

        assert response.status_code == 413

    def test_share_returns_rendered_answers(self, client) -> None:
        project = _create_project(client, user="alice")
        client.post(
            f"/api/projects/{project['id']}/questions",
            json={"text": "Explain a half adder"},
            headers={"X-User-Id": "alice"},
        )

        response = client.get(f"/api/share/{project['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Digital Logic"
        question = body["questions"][0]
        assert question["title"] == "Half Adder"
        overview = question["sections"][0]
        assert overview["name"] == "Overview"
        assert [s["kind"] for s in overview["segments"]] == ["markdown", "diagram", "markdown"]
        assert "A \\cdot B" in overview["segments"][0]["text"]

    def test_share_unknown_project(self, client) -> None:
        assert client.get("/api/share/missing").status_code == 404
