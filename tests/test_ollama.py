import json
from pathlib import Path
from types import SimpleNamespace

import psutil
import pytest
import responses

from huntr.models import CVChunk, CVProfile
from huntr.ollama import (
    OllamaClient,
    OllamaError,
    check_model_available,
    check_ram_available,
    extract_profile,
    generate_embeddings,
    ollama_host,
    save_profile,
    select_model,
)

HOST = "ollama.test:11434"
TAGS_URL = f"http://{HOST}/api/tags"
EMBED_URL = f"http://{HOST}/api/embed"
GENERATE_URL = f"http://{HOST}/api/generate"


@pytest.fixture
def api(monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", HOST)
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _set_ram(monkeypatch, gib):
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(available=gib * 1024**3))


def _tags(api, *names):
    api.add(responses.GET, TAGS_URL, json={"models": [{"name": n} for n in names]})


def _client():
    return OllamaClient(model="phi:2.7b", embedding_model="nomic-embed-text", host=HOST)


def test_ollama_host_default(monkeypatch):
    monkeypatch.delenv("OLLAMA_HOST", raising=False)
    assert ollama_host() == "host.docker.internal:11434"


def test_ollama_host_from_env(monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", HOST)
    assert ollama_host() == HOST


def test_check_ram_available_in_mib(monkeypatch):
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(available=2048 * 1024 * 1024))
    assert check_ram_available() == 2048.0


def test_check_ram_available_failure_returns_zero(monkeypatch):
    def broken():
        raise OSError("no meminfo")

    monkeypatch.setattr(psutil, "virtual_memory", broken)
    assert check_ram_available() == 0.0


def test_check_model_available(api):
    _tags(api, "phi:2.7b", "nomic-embed-text")
    assert check_model_available("phi:2.7b", HOST) is True
    assert check_model_available("llama2-uncensored", HOST) is False


def test_check_model_available_connection_error(api):
    assert check_model_available("phi:2.7b", HOST) is False


def test_check_model_available_bad_json(api):
    api.add(responses.GET, TAGS_URL, body="not json")
    assert check_model_available("phi:2.7b", HOST) is False


def test_select_model_uses_available_override(api, monkeypatch):
    _set_ram(monkeypatch, 1)
    _tags(api, "custom:latest", "nomic-embed-text")
    client = select_model("custom:latest", "")
    assert client.model == "custom:latest"
    assert client.embedding_model == "nomic-embed-text"
    assert client.host == HOST


def test_select_model_primary_with_enough_ram(api, monkeypatch):
    _set_ram(monkeypatch, 8)
    _tags(api, "llama2-uncensored", "phi:2.7b")
    client = select_model("missing:model", "")
    assert client.model == "llama2-uncensored"
    assert client.reason.startswith("Primary model")


def test_select_model_alt_primary(api, monkeypatch):
    _set_ram(monkeypatch, 8)
    _tags(api, "mistral:7b-q4_K_M")
    assert select_model().model == "mistral:7b-q4_K_M"


def test_select_model_low_ram_falls_back(api, monkeypatch):
    _set_ram(monkeypatch, 1)
    _tags(api, "llama2-uncensored", "phi:2.7b")
    client = select_model()
    assert client.model == "phi:2.7b"
    assert client.reason.startswith("Fallback model")


def test_select_model_low_ram_without_fallback_fails(api, monkeypatch):
    _set_ram(monkeypatch, 1)
    _tags(api, "llama2-uncensored")
    with pytest.raises(OllamaError):
        select_model()


def test_select_model_nothing_available(api, monkeypatch):
    _set_ram(monkeypatch, 8)
    _tags(api)
    with pytest.raises(OllamaError, match="no Ollama LLM models available"):
        select_model()


def test_select_model_embedding_override_kept(api, monkeypatch):
    _set_ram(monkeypatch, 8)
    _tags(api, "phi:2.7b")
    client = select_model("", "mxbai-embed-large")
    assert client.embedding_model == "mxbai-embed-large"


def test_generate_embeddings_fills_chunks(api):
    api.add(responses.POST, EMBED_URL, json={"embeddings": [[0.25, 0.5, 0.75]]})
    chunks = [CVChunk("alpha", 0, 0, 5), CVChunk("beta", 1, 5, 9)]
    result = generate_embeddings(chunks, _client())
    assert result is not chunks or result == chunks
    assert [c.embedding for c in chunks] == [[0.25, 0.5, 0.75], [0.25, 0.5, 0.75]]
    bodies = [json.loads(call.request.body) for call in api.calls]
    assert bodies == [
        {"model": "nomic-embed-text", "input": "alpha"},
        {"model": "nomic-embed-text", "input": "beta"},
    ]


def test_generate_embeddings_bad_status(api):
    api.add(responses.POST, EMBED_URL, status=500, json={"error": "boom"})
    with pytest.raises(OllamaError, match="unexpected status"):
        generate_embeddings([CVChunk("alpha", 0, 0, 5)], _client())


def test_generate_embeddings_empty_response(api):
    api.add(responses.POST, EMBED_URL, json={"embeddings": []})
    with pytest.raises(OllamaError, match="empty response"):
        generate_embeddings([CVChunk("alpha", 0, 0, 5)], _client())


def test_generate_embeddings_connection_error(api):
    with pytest.raises(OllamaError, match="embedding request 0"):
        generate_embeddings([CVChunk("alpha", 0, 0, 5)], _client())


def test_extract_profile_from_fenced_json(api):
    reply = 'Sure:\n```json\n{"skills": ["Go"], "domains": ["Payments"], "experience": "ten years"}\n```'
    api.add(responses.POST, GENERATE_URL, json={"response": reply})
    profile = extract_profile("My CV", _client())
    assert profile == CVProfile(skills=["Go"], domains=["Payments"], experience="ten years")


def test_extract_profile_request_payload(api):
    api.add(responses.POST, GENERATE_URL, json={"response": '{"skills": null}'})
    profile = extract_profile("x" * 6000, _client())
    assert profile.skills == []
    assert profile.domains == []
    body = json.loads(api.calls[0].request.body)
    assert body["model"] == "phi:2.7b"
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.1, "num_predict": 500}
    assert body["prompt"].endswith("x" * 5000)
    assert "x" * 5001 not in body["prompt"]


def test_extract_profile_invalid_json(api):
    api.add(responses.POST, GENERATE_URL, json={"response": "I cannot help with that"})
    with pytest.raises(OllamaError, match="parse profile JSON"):
        extract_profile("My CV", _client())


def test_extract_profile_connection_error(api):
    with pytest.raises(OllamaError, match="ollama request"):
        extract_profile("My CV", _client())


def test_save_profile_round_trip(tmp_path: Path):
    profile = CVProfile(skills=["Go", "Kubernetes"], domains=["FinTech"], experience="Platform work")
    path = tmp_path / "cv_profile.json"
    save_profile(profile, path)
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert CVProfile.from_dict(json.loads(text)) == profile