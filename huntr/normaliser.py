"""Normalisation of raw scraped job listings."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from huntr.models import Job

log = logging.getLogger(__name__)

_ABBREVIATIONS = {
    "Dev": "Developer",
    "Eng": "Engineer",
    "Sr": "Senior",
    "Jr": "Junior",
    "Mgr": "Manager",
    "Dir": "Director",
}
_ABBREVIATION_PATTERNS = [
    (re.compile(r"\b" + re.escape(abbrev) + r"\b", re.IGNORECASE | re.ASCII), full)
    for abbrev, full in _ABBREVIATIONS.items()
]

_SALARY_K = re.compile(r"(\d+\.?\d*)\s*k", re.IGNORECASE | re.ASCII)
_SALARY_NUM = re.compile(r"\d+", re.ASCII)
_WHITESPACE = re.compile(r"[\t\n\f\r ]+")
_CURRENCY = re.compile(r"[£$€,\t\n\f\r ]")
_WORD = re.compile(r"[^\W_]+(?:'[^\W_]+)*")

_REMOTE_PATTERNS = ("remote", "work from home", "wfh", "home based")
_UK_CITIES = {
    "london": "London",
    "manchester": "Manchester",
    "birmingham": "Birmingham",
    "edinburgh": "Edinburgh",
    "glasgow": "Glasgow",
    "bristol": "Bristol",
    "leeds": "Leeds",
    "liverpool": "Liverpool",
}

_MAX_DESCRIPTION = 2000


def _title_case(text: str) -> str:
    return _WORD.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), text)


def normalise_title(title: str) -> str:
    """Title-case a job title and expand common abbreviations."""
    if not title:
        return ""
    normalised = _title_case(title.strip())
    for pattern, full in _ABBREVIATION_PATTERNS:
        normalised = pattern.sub(full, normalised)
    return normalised


def parse_salary(salary_str: str) -> tuple[str, int | None]:
    """Return the trimmed salary text and its numeric value, if one can be found."""
    if not salary_str:
        return "", None
    original = salary_str.strip()
    cleaned = _CURRENCY.sub("", original)

    match = _SALARY_K.search(cleaned)
    if match:
        return original, int(float(match.group(1)) * 1000)

    match = _SALARY_NUM.search(cleaned)
    if match:
        value = int(match.group(0))
        if value < 1000:
            value *= 1000
        return original, value

    return original, None


def _is_remote_word(part: str) -> bool:
    return any(part.casefold() == pattern.casefold() for pattern in _REMOTE_PATTERNS)


def standardise_location(location: str) -> str:
    """Map remote variants to "Remote" and known UK cities to their canonical name."""
    if not location:
        return ""
    location = location.strip()
    lower = location.lower()

    if any(pattern in lower for pattern in _REMOTE_PATTERNS):
        if "/" in location:
            parts = ["Remote" if _is_remote_word(part.strip()) else part for part in location.split("/")]
            return " / ".join(parts)
        return "Remote"

    for key, city in _UK_CITIES.items():
        if key in lower:
            return city
    return location


def standardise_work_type(work_type: str, location: str) -> str:
    """Derive Remote, Hybrid or On-site from the work type and location."""
    if not work_type and not location:
        return ""
    combined = f"{work_type} {location}".lower()

    if "remote" in combined or "work from home" in combined or "wfh" in combined:
        return "Hybrid" if "hybrid" in combined else "Remote"
    if "hybrid" in combined:
        return "Hybrid"
    if "on-site" in combined or "onsite" in combined or "office" in combined:
        return "On-site"
    return work_type.strip()


def clean_text(text: str) -> str:
    """Collapse whitespace and remove non-breaking and zero-width spaces."""
    if not text:
        return ""
    text = _WHITESPACE.sub(" ", text.strip())
    return text.replace("\u00a0", " ").replace("\u200b", "")


def remove_duplicates(jobs: Iterable[Job]) -> list[Job]:
    """Keep the first job for each (title, company, location) key, ignoring case."""
    jobs = list(jobs)
    seen: set[tuple[str, str, str]] = set()
    unique: list[Job] = []
    for job in jobs:
        key = (
            job.title.strip().lower(),
            job.company.strip().lower(),
            job.location.strip().lower(),
        )
        if key not in seen:
            seen.add(key)
            unique.append(job)
    removed = len(jobs) - len(unique)
    if removed:
        log.info("removed duplicate jobs", extra={"count": removed})
    return unique


def normalise_jobs(raw_jobs: Iterable[Job]) -> list[Job]:
    """Return normalised copies of the raw jobs with duplicates removed."""
    raw_jobs = list(raw_jobs)
    log.info("starting normalisation", extra={"count": len(raw_jobs)})
    normalised: list[Job] = []

    for job in raw_jobs:
        location = standardise_location(job.location)
        _, salary_num = parse_salary(job.salary)
        normalised.append(
            Job(
                title=normalise_title(job.title),
                company=job.company.strip(),
                location=location,
                work_type=standardise_work_type(job.work_type, location),
                salary=job.salary,
                salary_num=salary_num,
                description=clean_text(job.description)[:_MAX_DESCRIPTION],
                responsibilities=clean_text(job.responsibilities),
                skills=clean_text(job.skills),
                benefits=clean_text(job.benefits),
                link=job.link,
                source=job.source or "Unknown",
            )
        )

    normalised = remove_duplicates(normalised)
    log.info("normalisation complete", extra={"count": len(normalised)})
    return normalised