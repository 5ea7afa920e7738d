"""The processor service: turns uploaded CVs into profiles and raw jobs into scored jobs."""

from __future__ import annotations

import argparse
import copy
import json
import logging
import os
import signal
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Sequence

from huntr.chunker import LockFileExistsError, chunk_text, create_lock_file, remove_lock_file
from huntr.config import ConfigError, Preferences, load
from huntr.logsetup import setup_logger_with_file, touch_heartbeat
from huntr.models import CVProfile, Job
from huntr.normaliser import normalise_jobs
from huntr.ollama import extract_profile, generate_embeddings, save_profile, select_model
from huntr.scorer import score_jobs
from huntr.vector_db import VectorDB

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 60
CHUNK_SIZE = 600
CHUNK_OVERLAP = 120
LOG_MAX_BYTES = 100_000
LOG_MAX_AGE = timedelta(hours=24)
MAX_ADDED_SKILLS = 3
MAX_ADDED_DOMAINS = 2

_TIMESTAMP = "%Y%m%d_%H%M%S"


@dataclass(frozen=True)
class ServicePaths:
    """Where the processor reads its inputs and writes its outputs."""

    config_path: Path
    cv_file: Path
    lock_file: Path
    profile_out: Path
    raw_dir: Path
    norm_dir: Path
    scored_dir: Path
    process_dir: Path
    log_file: Path
    state_dir: Path
    vector_db: Path

    @classmethod
    def from_root(cls, root: str | Path = "/data") -> ServicePaths:
        """Lay out all paths under one data directory."""
        root = Path(root)
        cv_dir = root / "cv" / "cv-latest"
        return cls(
            config_path=root / "config" / "config.json",
            cv_file=cv_dir / "cv_uploaded.docx",
            lock_file=cv_dir / ".processing_lock",
            profile_out=root / "cv" / "cv_profile.json",
            raw_dir=root / "jobs" / "raw",
            norm_dir=root / "jobs" / "normalised",
            scored_dir=root / "jobs" / "scored",
            process_dir=root / "cv" / "cv-processed",
            log_file=root / "logs" / "processor.log",
            state_dir=root / "state",
            vector_db=root / "chromadb",
        )


def _timestamp() -> str:
    return datetime.now().strftime(_TIMESTAMP)


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def poll_interval() -> int:
    """Return PROCESSOR_POLL_INTERVAL in seconds if it is a positive integer, else 60."""
    value = os.environ.get("PROCESSOR_POLL_INTERVAL", "")
    try:
        seconds = int(value)
    except ValueError:
        return DEFAULT_POLL_INTERVAL
    return seconds if seconds > 0 else DEFAULT_POLL_INTERVAL


def process_cv(paths: ServicePaths | None = None) -> Path | None:
    """Run the CV pipeline on an uploaded CV.

    Returns where the processed CV was moved, or None when there is no CV
    or another run holds the lock. Failures in the pipeline are raised.
    """
    paths = paths or ServicePaths.from_root()
    if not paths.cv_file.exists():
        log.debug("no CV file found")
        return None

    try:
        create_lock_file(paths.lock_file)
    except LockFileExistsError:
        log.info("CV processing already in progress")
        return None

    try:
        log.info("starting CV processing pipeline")

        log.info("step 1: parsing CV DOCX")
        from huntr.cv_parser import parse_cv_docx

        cv_text = parse_cv_docx(paths.cv_file)
        if not cv_text:
            raise ValueError("CV parsing produced no text")

        log.info("step 2: chunking CV text")
        chunks = chunk_text(cv_text, CHUNK_SIZE, CHUNK_OVERLAP)
        if not chunks:
            raise ValueError("failed to chunk CV text")

        log.info("step 3: generating embeddings")
        llm_override = embedding_override = ""
        try:
            cfg = load(paths.config_path)
        except (ConfigError, OSError, ValueError) as exc:
            log.warning(
                "config not available for model selection, using defaults", extra={"error": str(exc)}
            )
        else:
            llm_override = cfg.cv.llm_model or ""
            embedding_override = cfg.cv.embedding_model or ""
        client = select_model(llm_override, embedding_override)
        generate_embeddings(chunks, client)

        log.info("step 4: storing in vector DB")
        vdb = VectorDB(paths.vector_db)
        now = datetime.now()
        metadata = {
            "filename": paths.cv_file.name,
            "upload_date": now.astimezone().isoformat(timespec="seconds"),
            "chunk_count": str(len(chunks)),
        }
        vdb.store_cv_chunks(f"cv_{now.strftime(_TIMESTAMP)}", chunks, metadata)

        log.info("step 5: extracting CV profile via Ollama")
        try:
            profile = extract_profile(cv_text, client)
        except Exception as exc:
            log.warning("profile extraction failed", extra={"error": str(exc)})
        else:
            try:
                paths.profile_out.parent.mkdir(parents=True, exist_ok=True)
                save_profile(profile, paths.profile_out)
            except OSError as exc:
                log.error("failed to save profile", extra={"error": str(exc)})

        paths.process_dir.mkdir(parents=True, exist_ok=True)
        dest = paths.process_dir / f"cv_processed_{_timestamp()}.docx"
        try:
            paths.cv_file.replace(dest)
        except OSError as exc:
            log.error("failed to move processed CV", extra={"error": str(exc)})
        log.info("CV processing complete", extra={"processed": str(dest)})
        return dest
    finally:
        remove_lock_file(paths.lock_file)


def load_cv_profile(path: str | Path) -> CVProfile | None:
    """Read a saved CV profile; None if it is missing or malformed."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        return None
    try:
        return CVProfile.from_dict(json.loads(text))
    except ValueError as exc:
        log.warning("failed to parse CV profile JSON", extra={"path": str(path), "error": str(exc)})
        return None


def enrich_preferences_with_cv_profile(prefs: Preferences, profile: CVProfile | None) -> Preferences:
    """Return preferences with a few CV skills and domains added.

    Up to three unknown skills join the adjacent skill group and up to two
    unknown domains join the domain keywords. The input is left unchanged.
    """
    if profile is None:
        return prefs
    prefs = copy.deepcopy(prefs)
    role = copy.deepcopy(prefs.effective_role_profile())

    existing = {
        keyword.lower()
        for group in (role.primary_skills, role.secondary_skills, role.adjacent_skills)
        for keyword in group.keywords
    }

    added = 0
    for skill in profile.skills:
        if added >= MAX_ADDED_SKILLS:
            break
        key = skill.strip().lower()
        if not key or key in existing:
            continue
        role.adjacent_skills.keywords.append(skill)
        existing.add(key)
        added += 1

    added = 0
    for domain in profile.domains:
        if added >= MAX_ADDED_DOMAINS:
            break
        name = domain.strip()
        if not name or any(current.casefold() == name.casefold() for current in prefs.domain_keywords):
            continue
        prefs.domain_keywords.append(name)
        added += 1

    prefs.role_profile = role
    return prefs


class JobProcessor:
    """Normalises and scores the newest raw job file, once per file."""

    def __init__(self, paths: ServicePaths | None = None) -> None:
        self.paths = paths or ServicePaths.from_root()
        self.last_processed_file: Path | None = None

    def _latest_raw_file(self) -> Path | None:
        try:
            candidates = [
                entry
                for entry in self.paths.raw_dir.iterdir()
                if entry.suffix == ".json" and not entry.is_dir()
            ]
        except OSError:
            log.warning("raw jobs directory not found")
            return None
        if not candidates:
            log.warning("no raw job files found")
            return None
        return max(candidates, key=lambda entry: entry.name)

    def process_jobs(self) -> Path | None:
        """Score the latest raw jobs; return the scored file, or None if nothing was done."""
        try:
            cfg = load(self.paths.config_path)
        except ConfigError:
            raise
        except (OSError, ValueError) as exc:
            raise ConfigError(f"config: {self.paths.config_path}: {exc}") from exc

        latest = self._latest_raw_file()
        if latest is None:
            return None
        if latest == self.last_processed_file:
            log.debug("latest raw file already processed, skipping", extra={"file": str(latest)})
            return None

        log.info("processing raw jobs", extra={"file": str(latest)})
        data = json.loads(latest.read_text(encoding="utf-8"))
        if data is None:
            data = []
        if not isinstance(data, list):
            raise ValueError(f"{latest}: expected a list of jobs")
        raw_jobs = [Job.from_dict(item) for item in data]
        if not raw_jobs:
            log.info("no jobs to process")
            return None
        log.info("loaded raw jobs", extra={"count": len(raw_jobs)})

        log.info("step 1: normalising jobs")
        normalised = normalise_jobs(raw_jobs)
        if not normalised:
            log.warning("normalisation produced 0 jobs")
            return None

        stamp = _timestamp()
        norm_file = self.paths.norm_dir / f"jobs_normalised_{stamp}.json"
        _write_json(norm_file, [job.to_dict() for job in normalised])
        log.info("normalised jobs written", extra={"file": str(norm_file), "count": len(normalised)})

        prefs = enrich_preferences_with_cv_profile(
            cfg.preferences, load_cv_profile(self.paths.profile_out)
        )

        log.info("step 2: scoring jobs")
        scored = score_jobs(normalised, prefs)

        scored_file = self.paths.scored_dir / f"jobs_scored_{stamp}.json"
        _write_json(scored_file, [job.to_dict() for job in scored])
        log.info("scored jobs written", extra={"file": str(scored_file), "count": len(scored)})

        self.last_processed_file = latest
        return scored_file


def rotate_log(
    log_path: str | Path,
    max_bytes: int = LOG_MAX_BYTES,
    max_age: timedelta = LOG_MAX_AGE,
) -> Path | None:
    """Archive the log once it grows past ``max_bytes`` and prune old archives.

    Returns the archive path, or None if the log was left in place.
    """
    log_path = Path(log_path)
    try:
        size = log_path.stat().st_size
    except OSError:
        return None
    if size <= max_bytes:
        return None

    archive_dir = log_path.parent / "archive"
    archive_dir.mkdir(parents=True, exist_ok=True)
    archive = archive_dir / f"{log_path.stem}_{_timestamp()}{log_path.suffix}"
    try:
        log_path.replace(archive)
    except OSError as exc:
        log.error("failed to archive log", extra={"error": str(exc)})
        return None
    log.info("archived log", extra={"path": str(archive), "size": size})

    cutoff = time.time() - max_age.total_seconds()
    for entry in archive_dir.iterdir():
        try:
            if entry.stat().st_mtime < cutoff:
                entry.unlink()
        except OSError:
            continue
    return archive


def _run_step(step: Any, name: str) -> None:
    try:
        step()
    except Exception as exc:
        log.error(f"{name} failed", extra={"error": str(exc)})


def main(argv: Sequence[str] | None = None) -> int:
    """Run the processor poll loop until SIGINT or SIGTERM."""
    parser = argparse.ArgumentParser(prog="huntr-processor")
    parser.add_argument("--data-root", default="/data", help="base data directory")
    parser.add_argument("--once", action="store_true", help="run a single poll cycle and exit")
    args = parser.parse_args(argv)

    paths = ServicePaths.from_root(args.data_root)
    _, file_handler = setup_logger_with_file("processor", os.environ.get("LOG_LEVEL"), paths.log_file)
    interval = poll_interval()
    log.info("Huntr Processor Service — Starting", extra={"poll_interval": interval})

    stop = threading.Event()

    def _on_signal(signum: int, _frame: Any) -> None:
        log.info("received signal, shutting down", extra={"signal": signal.Signals(signum).name})
        stop.set()

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    processor = JobProcessor(paths)
    try:
        while True:
            rotate_log(paths.log_file)
            touch_heartbeat("processor", paths.state_dir)
            log.info("poll cycle started")
            _run_step(lambda: process_cv(paths), "CV processing")
            _run_step(processor.process_jobs, "job processing")
            if args.once:
                break
            log.info("sleeping", extra={"seconds": interval})
            if stop.wait(interval):
                log.info("shutting down")
                break
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if file_handler is not None:
            logging.getLogger().removeHandler(file_handler)
            file_handler.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())