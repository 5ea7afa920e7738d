"""Relevance scoring and ranking of normalised jobs."""

from __future__ import annotations

import logging
from typing import Iterable

from huntr.config import Preferences
from huntr.models import Job, ScoreBreakdown

log = logging.getLogger(__name__)

DOMAIN_WEIGHT = 25
LOCATION_WEIGHT = 20
SALARY_WEIGHT = 15
EXCLUDED_PENALTY = 5


def match_keywords(text: str, keywords: Iterable[str]) -> int:
    """Count keywords found in the text, ignoring case."""
    keywords = list(keywords)
    if not text or not keywords:
        return 0
    lower = text.lower()
    return sum(1 for keyword in keywords if keyword.lower() in lower)


def matching_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Return the distinct lower-cased keywords found in the text."""
    keywords = list(keywords)
    if not text or not keywords:
        return []
    lower = text.lower()
    matches: list[str] = []
    for keyword in keywords:
        key = keyword.strip().lower()
        if key and key not in matches and key in lower:
            matches.append(key)
    return matches


def match_location(job_location: str, preferred: Iterable[str]) -> bool:
    """Return True if any preferred location appears in the job location."""
    preferred = list(preferred)
    if not job_location or not preferred:
        return False
    lower = job_location.lower()
    return any(location.lower() in lower for location in preferred)


def score_job(job: Job, prefs: Preferences) -> Job:
    """Set the job's score and breakdown from the preferences and return the job."""
    tech_text = f"{job.title} {job.skills} {job.responsibilities} {job.description}"
    profile = prefs.effective_role_profile()

    primary = min(len(matching_keywords(tech_text, profile.primary_skills.keywords)), profile.primary_skills.cap)
    secondary = min(
        len(matching_keywords(tech_text, profile.secondary_skills.keywords)), profile.secondary_skills.cap
    )
    adjacent = min(len(matching_keywords(tech_text, profile.adjacent_skills.keywords)), profile.adjacent_skills.cap)

    primary_score = primary * profile.primary_skills.weight
    secondary_score = secondary * profile.secondary_skills.weight
    adjacent_score = adjacent * profile.adjacent_skills.weight
    tech_score = primary_score + secondary_score + adjacent_score

    penalty = min(match_keywords(tech_text, profile.excluded_skills) * EXCLUDED_PENALTY, tech_score // 2)
    tech_score -= penalty

    domain_text = f"{job.title} {job.skills} {job.responsibilities}"
    domain_matches = match_keywords(domain_text, prefs.domain_keywords)
    domain_score = domain_matches * DOMAIN_WEIGHT

    breakdown = ScoreBreakdown(
        tech_stack_matches=primary + secondary + adjacent,
        tech_stack_score=tech_score,
        primary_matches=primary,
        primary_score=primary_score,
        secondary_matches=secondary,
        secondary_score=secondary_score,
        adjacent_matches=adjacent,
        adjacent_score=adjacent_score,
        excluded_penalty=penalty,
        domain_matches=domain_matches,
        domain_score=domain_score,
    )

    if prefs.locations and match_location(job.location, prefs.locations):
        breakdown.location_match = True
        breakdown.location_score = LOCATION_WEIGHT

    if job.salary_num is not None and prefs.min_salary > 0 and job.salary_num >= prefs.min_salary:
        breakdown.salary_threshold = True
        breakdown.salary_score = SALARY_WEIGHT

    job.score = tech_score + domain_score + breakdown.location_score + breakdown.salary_score
    job.score_breakdown = breakdown
    return job


def rank_jobs(jobs: list[Job]) -> None:
    """Sort jobs in place by score descending, then title ascending."""
    jobs.sort(key=lambda job: (-job.score, job.title))


def score_jobs(jobs: list[Job], prefs: Preferences) -> list[Job]:
    """Score every job, rank them and return the ranked list."""
    log.info("starting scoring", extra={"count": len(jobs)})
    for job in jobs:
        score_job(job, prefs)
    rank_jobs(jobs)
    if jobs:
        log.info("scoring complete", extra={"min": jobs[-1].score, "max": jobs[0].score})
    return jobs