"""Model selection, embeddings and CV profile extraction through an Ollama server."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import psutil
import requests

from huntr.models import CVChunk, CVProfile

log = logging.getLogger(__name__)

PRIMARY_MODEL = "llama2-uncensored"
ALT_PRIMARY_MODEL = "mistral:7b-q4_K_M"
FALLBACK_MODEL = "phi:2.7b"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
PRIMARY_RAM_NEEDED_GB = 5.0
DEFAULT_HOST = "host.docker.internal:11434"

_TAGS_TIMEOUT = 5
_EMBED_TIMEOUT = 60
_GENERATE_TIMEOUT = 120
_MAX_CV_CHARS = 5000

_PROFILE_PROMPT = """Extract the following information from this CV/resume:

1. **Skills**: List all technical skills, programming languages, frameworks, tools
2. **Domains**: List all industry domains/areas of expertise (e.g., Transport, Ticketing, Payments, Hardware Integration)
3. **Experience**: Summarize years of experience and key roles

Return the response as valid JSON with this structure:
{
  "skills": ["skill1", "skill2", ...],
  "domains": ["domain1", "domain2", ...],
  "experience": "summary text"
}

CV Text:
"""


class OllamaError(Exception):
    """Raised when the Ollama server cannot provide what was asked of it."""


@dataclass
class OllamaClient:
    """The selected models and the host that serves them."""

    model: str
    embedding_model: str
    host: str
    reason: str = ""


def ollama_host() -> str:
    """Return the Ollama host from OLLAMA_HOST, or the default."""
    return os.environ.get("OLLAMA_HOST") or DEFAULT_HOST


def check_ram_available() -> float:
    """Return available RAM in MiB, or 0 if it cannot be determined."""
    try:
        available = psutil.virtual_memory().available
    except Exception as exc:  # psutil may fail in restricted environments
        log.warning("could not check RAM", extra={"error": str(exc)})
        return 0.0
    mb = available / (1024 * 1024)
    log.info("available RAM", extra={"mb": int(mb)})
    return mb


def check_model_available(model: str, host: str) -> bool:
    """Return True if the Ollama server lists the model."""
    try:
        response = requests.get(f"http://{host}/api/tags", timeout=_TAGS_TIMEOUT)
        result = response.json()
    except (requests.RequestException, ValueError):
        return False
    if not isinstance(result, dict):
        return False
    models = result.get("models") or []
    if not isinstance(models, list):
        return False
    return any(isinstance(entry, dict) and entry.get("name") == model for entry in models)


def _auto_select_llm(host: str, ram_gb: float) -> tuple[str, str]:
    for model in (PRIMARY_MODEL, ALT_PRIMARY_MODEL):
        if check_model_available(model, host):
            if ram_gb >= PRIMARY_RAM_NEEDED_GB:
                log.info("selected primary LLM model", extra={"model": model, "ram_gb": ram_gb})
                return model, f"Primary model with sufficient RAM ({ram_gb:.1f}GB)"
            log.warning("insufficient RAM for primary model", extra={"model": model, "ram_gb": ram_gb})
            break
    if check_model_available(FALLBACK_MODEL, host):
        return FALLBACK_MODEL, "Fallback model (RAM pressure or primary unavailable)"
    return "", ""


def select_model(llm_override: str = "", embedding_override: str = "") -> OllamaClient:
    """Choose the LLM and embedding models; empty overrides mean auto-detection."""
    host = ollama_host()
    ram_gb = check_ram_available() / 1024

    if llm_override and check_model_available(llm_override, host):
        llm_model = llm_override
        reason = f"Configured LLM model ({ram_gb:.1f}GB RAM)"
        log.info("using configured LLM model", extra={"model": llm_model})
    else:
        if llm_override:
            log.warning("configured LLM model not available, falling back", extra={"model": llm_override})
        llm_model, reason = _auto_select_llm(host, ram_gb)

    if not llm_model:
        raise OllamaError(
            f"no Ollama LLM models available ({PRIMARY_MODEL}/{ALT_PRIMARY_MODEL}/{FALLBACK_MODEL}). "
            f"Install with: ollama pull {PRIMARY_MODEL}"
        )

    embedding_model = embedding_override or DEFAULT_EMBEDDING_MODEL
    if not check_model_available(embedding_model, host):
        log.warning(
            "embedding model not available, will be pulled on first use",
            extra={"model": embedding_model},
        )

    log.info("models selected", extra={"llm": llm_model, "embedding": embedding_model})
    return OllamaClient(model=llm_model, embedding_model=embedding_model, host=host, reason=reason)


def _embed_one(session: requests.Session, url: str, model: str, text: str, position: int) -> list[float]:
    try:
        response = session.post(url, json={"model": model, "input": text}, timeout=_EMBED_TIMEOUT)
    except requests.RequestException as exc:
        raise OllamaError(f"embedding request {position}: {exc}") from exc
    if response.status_code != 200:
        raise OllamaError(
            f"embedding request {position}: unexpected status {response.status_code} {response.reason}"
        )
    try:
        embeddings = response.json()["embeddings"]
        vectors = [[float(value) for value in vector] for vector in embeddings or []]
    except (ValueError, KeyError, TypeError) as exc:
        raise OllamaError(f"embedding decode {position}: {exc}") from exc
    if not vectors:
        raise OllamaError(f"embedding {position}: empty response")
    return vectors[0]


def generate_embeddings(chunks: Iterable[CVChunk], client: OllamaClient) -> list[CVChunk]:
    """Fill in each chunk's embedding using the client's embedding model."""
    chunks = list(chunks)
    url = f"http://{client.host}/api/embed"
    log.info("generating embeddings", extra={"chunks": len(chunks), "model": client.embedding_model})
    with requests.Session() as session:
        for position, chunk in enumerate(chunks):
            chunk.embedding = _embed_one(session, url, client.embedding_model, chunk.text, position)
    log.info("embeddings generated", extra={"count": len(chunks)})
    return chunks


def _strip_code_fence(text: str) -> str:
    for fence in ("```json", "```"):
        position = text.find(fence)
        if position >= 0:
            text = text[position + len(fence) :]
            end = text.find("```")
            if end >= 0:
                text = text[:end]
            break
    return text.strip()


def extract_profile(cv_text: str, client: OllamaClient) -> CVProfile:
    """Ask the LLM for the skills, domains and experience in a CV."""
    payload: dict[str, Any] = {
        "model": client.model,
        "prompt": _PROFILE_PROMPT + cv_text[:_MAX_CV_CHARS],
        "options": {"temperature": 0.1, "num_predict": 500},
        "stream": False,
    }
    try:
        response = requests.post(
            f"http://{client.host}/api/generate", json=payload, timeout=_GENERATE_TIMEOUT
        )
    except requests.RequestException as exc:
        raise OllamaError(f"ollama request: {exc}") from exc

    try:
        result = response.json()
    except ValueError as exc:
        raise OllamaError(f"ollama decode: {exc}") from exc
    reply = result.get("response", "") if isinstance(result, dict) else None
    if not isinstance(reply, str):
        raise OllamaError("ollama decode: response is not a string")

    try:
        data = json.loads(_strip_code_fence(reply))
        profile = CVProfile.from_dict({} if data is None else data)
    except ValueError as exc:
        raise OllamaError(f"parse profile JSON: {exc}") from exc

    log.info("extracted CV profile", extra={"skills": len(profile.skills), "domains": len(profile.domains)})
    return profile


def save_profile(profile: CVProfile, path: str | Path) -> None:
    """Write the profile as indented JSON with a trailing newline."""
    text = json.dumps(profile.to_dict(), indent=2, ensure_ascii=False) + "\n"
    Path(path).write_text(text, encoding="utf-8")