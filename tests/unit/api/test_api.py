# tests/unit/api/test_api.py
"""
针对 HTTP 边界层的测试。

通过 FastAPI 的 TestClient 驱动完整的 lifespan（备份、缓存、协调器与后台任务），
翻译引擎使用 Debug 引擎。
"""

import base64
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from skill_translator.api.app import create_app
from skill_translator.config import TranslatorConfig
from skill_translator.engines.debug import DebugEngine, DebugEngineConfig
from skill_translator.utils import compute_hash

SKILL = "---\nname: demo\ndescription: Demo skill\n---\n# Demo\n\n```sh\nls\n```\n"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _unb64(text: str) -> str:
    return base64.b64decode(text).decode("utf-8")


def _payload(content: str = SKILL, path: str = "demo/SKILL.md", **extra: object) -> dict:
    return {
        "content": _b64(content),
        "content_hash": compute_hash(content),
        "path": path,
        **extra,
    }


@pytest.fixture
def engine() -> DebugEngine:
    return DebugEngine(DebugEngineConfig())


@pytest.fixture
def client(
    test_config: TranslatorConfig, engine: DebugEngine
) -> Generator[TestClient, None, None]:
    with TestClient(create_app(test_config, engine=engine)) as test_client:
        yield test_client


@pytest.fixture
def secured_client(
    test_config: TranslatorConfig, engine: DebugEngine
) -> Generator[TestClient, None, None]:
    config = test_config.model_copy(update={"local_api_bearer": SecretStr("s3cret")})
    with TestClient(create_app(config, engine=engine)) as test_client:
        yield test_client


def test_root_and_health(client: TestClient) -> None:
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["name"] == "skill-translator"
    assert root.json()["model"] == "debug"

    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json() == {
        "status": "healthy",
        "version": "1.0.0",
        "model": "debug",
        "target_language": "zh-CN",
    }


def test_translate_then_cache_hit(client: TestClient, engine: DebugEngine) -> None:
    first = client.post("/api/translate", json=_payload())
    assert first.status_code == 200
    body = first.json()
    assert body["cached"] is False
    assert body["content_hash"] == compute_hash(SKILL)
    translated = _unb64(body["translated_content"])
    assert translated.startswith("---\nname: demo\ndescription: [translated] Demo skill\n---\n")
    assert "```sh\nls\n```" in translated
    assert body["translated_hash"] == compute_hash(translated)
    assert "total_processing_time_ms" in body["metadata"]
    calls = engine.calls

    second = client.post("/api/translate", json=_payload())
    assert second.status_code == 200
    assert second.json()["cached"] is True
    assert _unb64(second.json()["translated_content"]) == translated
    assert "total_processing_time_ms" not in second.json()["metadata"]
    assert engine.calls == calls


def test_translate_with_language_override(client: TestClient) -> None:
    response = client.post(
        "/api/translate",
        json=_payload("Body\n", options={"target_language": "ja"}),
    )
    assert response.status_code == 200
    assert response.json()["metadata"]["target_language"] == "ja"


def test_long_lines_are_dropped_before_translation(
    client: TestClient, test_config: TranslatorConfig
) -> None:
    long_line = "x" * (test_config.max_line_length + 1)
    response = client.post("/api/translate", json=_payload(f"keep\n{long_line}\nend\n"))

    translated = _unb64(response.json()["translated_content"])
    assert long_line not in translated
    assert translated == "[translated] keep\nend"


@pytest.mark.parametrize("content", ["not base64!!", base64.b64encode(b"\xff\xfe").decode()])
def test_invalid_content_is_rejected(client: TestClient, content: str) -> None:
    response = client.post(
        "/api/translate",
        json={"content": content, "content_hash": "sha256:x", "path": "a.md"},
    )
    assert response.status_code == 400
    assert response.json()["detail"]


def test_translation_failure_maps_to_500(test_config: TranslatorConfig) -> None:
    engine = DebugEngine(DebugEngineConfig(mode="FAIL"))
    with TestClient(create_app(test_config, engine=engine)) as client:
        response = client.post("/api/translate", json=_payload())
    assert response.status_code == 500
    assert response.json()["detail"].startswith("Translation failed:")


def test_batch_isolates_failures(client: TestClient) -> None:
    client.post("/api/translate", json=_payload())
    response = client.post(
        "/api/translate/batch",
        json={
            "files": [
                _payload(),
                {"content": "@@@", "content_hash": "sha256:bad", "path": "bad.md"},
                _payload("Other\n", path="other/SKILL.md"),
            ]
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_files"] == 3
    assert body["successful"] == 2
    assert body["failed"] == 1
    assert body["cached_count"] == 1
    assert [r["success"] for r in body["results"]] == [True, False, True]
    assert body["results"][1]["error"]
    assert body["results"][1]["content_hash"] == "sha256:bad"


def test_batch_skip_cached_false_retranslates(
    client: TestClient, engine: DebugEngine
) -> None:
    client.post("/api/translate", json=_payload("Body\n"))
    calls = engine.calls
    response = client.post(
        "/api/translate/batch",
        json={"files": [_payload("Body\n")], "options": {"skip_cached": False}},
    )
    assert response.json()["results"][0]["cached"] is False
    assert engine.calls == calls + 1


def test_cache_management_endpoints(client: TestClient) -> None:
    client.post("/api/translate", json=_payload())
    client.post("/api/translate", json=_payload())

    flush = client.post("/api/cache/flush")
    assert flush.json() == {"success": True, "message": "Flushed 1 pending hit keys"}

    stats = client.get("/api/cache/stats").json()
    assert stats["total_entries"] == 1
    assert stats["total_hits"] == 1
    assert stats["total_misses"] == 1

    expired = client.delete("/api/cache/expired")
    assert expired.json() == {"success": True, "message": "Cleared 0 expired entries"}

    cleared = client.delete("/api/cache")
    assert cleared.json() == {"success": True, "message": "Cleared all 1 entries"}
    assert client.get("/api/cache/stats").json()["total_entries"] == 0


def test_shutdown_flushes_hits_and_backs_up_on_restart(
    test_config: TranslatorConfig, engine: DebugEngine
) -> None:
    with TestClient(create_app(test_config, engine=engine)) as client:
        client.post("/api/translate", json=_payload())
        client.post("/api/translate", json=_payload())

    db_path: Path = test_config.cache_db_path
    with TestClient(create_app(test_config, engine=DebugEngine(DebugEngineConfig()))) as client:
        assert client.get("/api/cache/stats").json()["total_hits"] == 1

    assert db_path.with_name("cache.bak.db").exists()


class TestBearerAuth:
    def test_health_is_public(self, secured_client: TestClient) -> None:
        assert secured_client.get("/api/health").status_code == 200

    def test_missing_header(self, secured_client: TestClient) -> None:
        response = secured_client.get("/api/cache/stats")
        assert response.status_code == 401
        assert response.json() == {"detail": "Missing Authorization header"}

    def test_wrong_scheme(self, secured_client: TestClient) -> None:
        response = secured_client.get(
            "/api/cache/stats", headers={"Authorization": "Basic s3cret"}
        )
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid Authorization header format"}

    def test_wrong_token(self, secured_client: TestClient) -> None:
        response = secured_client.get(
            "/api/cache/stats", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid API key"}

    def test_valid_token(self, secured_client: TestClient) -> None:
        response = secured_client.get(
            "/api/cache/stats", headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200
