"""Job listing and CV records shared across the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _integer(data: Mapping[str, Any], key: str, default: int | None = 0) -> int | None:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {type(value).__name__}")
    return value


def _boolean(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected a boolean, got {type(value).__name__}")
    return value


def _strings(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key}: expected a list of strings")
    return list(value)


def _floats(data: Mapping[str, Any], key: str) -> list[float]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(
        isinstance(item, (int, float)) and not isinstance(item, bool) for item in value
    ):
        raise ValueError(f"{key}: expected a list of numbers")
    return [float(item) for item in value]


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object, got {type(data).__name__}")
    return data


@dataclass
class CVProfile:
    """Skills, domains and experience extracted from a CV."""

    skills: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    experience: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "skills": list(self.skills),
            "domains": list(self.domains),
            "experience": self.experience,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CVProfile:
        data = _require_mapping(data, "cv profile")
        return cls(
            skills=_strings(data, "skills"),
            domains=_strings(data, "domains"),
            experience=_string(data, "experience"),
        )


@dataclass
class CVChunk:
    """A segment of CV text, optionally with its embedding."""

    text: str
    index: int
    start_char: int
    end_char: int
    embedding: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "text": self.text,
            "index": self.index,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }
        if self.embedding:
            out["embedding"] = list(self.embedding)
        return out


@dataclass
class ScoreBreakdown:
    """How a job's relevance score was made up."""

    tech_stack_matches: int = 0
    tech_stack_score: int = 0
    primary_matches: int = 0
    primary_score: int = 0
    secondary_matches: int = 0
    secondary_score: int = 0
    adjacent_matches: int = 0
    adjacent_score: int = 0
    excluded_penalty: int = 0
    domain_matches: int = 0
    domain_score: int = 0
    location_match: bool = False
    location_score: int = 0
    salary_threshold: bool = False
    salary_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "tech_stack_matches": self.tech_stack_matches,
            "tech_stack_score": self.tech_stack_score,
        }
        optional = {
            "primary_matches": self.primary_matches,
            "primary_score": self.primary_score,
            "secondary_matches": self.secondary_matches,
            "secondary_score": self.secondary_score,
            "adjacent_matches": self.adjacent_matches,
            "adjacent_score": self.adjacent_score,
            "excluded_penalty": self.excluded_penalty,
        }
        out.update({key: value for key, value in optional.items() if value})
        out.update(
            {
                "domain_matches": self.domain_matches,
                "domain_score": self.domain_score,
                "location_match": self.location_match,
                "location_score": self.location_score,
                "salary_threshold": self.salary_threshold,
                "salary_score": self.salary_score,
            }
        )
        return out


_BREAKDOWN_FLAGS = {"location_match", "salary_threshold"}


def _breakdown_from_dict(data: Any) -> ScoreBreakdown:
    data = _require_mapping(data, "score_breakdown")
    values: dict[str, Any] = {}
    for name in ScoreBreakdown.__dataclass_fields__:
        if name in _BREAKDOWN_FLAGS:
            values[name] = _boolean(data, name)
        else:
            values[name] = _integer(data, name)
    return ScoreBreakdown(**values)


@dataclass
class Job:
    """A job listing as it moves through scraping, normalising and scoring."""

    title: str = ""
    company: str = ""
    location: str = ""
    salary: str = ""
    responsibilities: str = ""
    skills: str = ""
    link: str = ""
    source: str = ""
    work_type: str = ""
    salary_num: int | None = None
    description: str = ""
    benefits: str = ""
    score: int = 0
    score_breakdown: ScoreBreakdown | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary": self.salary,
            "responsibilities": self.responsibilities,
            "skills": self.skills,
            "link": self.link,
            "source": self.source,
        }
        if self.work_type:
            out["work_type"] = self.work_type
        if self.salary_num is not None:
            out["salary_num"] = self.salary_num
        if self.description:
            out["description"] = self.description
        if self.benefits:
            out["benefits"] = self.benefits
        if self.score:
            out["score"] = self.score
        if self.score_breakdown is not None:
            out["score_breakdown"] = self.score_breakdown.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Job:
        data = _require_mapping(data, "job")
        breakdown = data.get("score_breakdown")
        return cls(
            title=_string(data, "title"),
            company=_string(data, "company"),
            location=_string(data, "location"),
            salary=_string(data, "salary"),
            responsibilities=_string(data, "responsibilities"),
            skills=_string(data, "skills"),
            link=_string(data, "link"),
            source=_string(data, "source"),
            work_type=_string(data, "work_type"),
            salary_num=_integer(data, "salary_num", None),
            description=_string(data, "description"),
            benefits=_string(data, "benefits"),
            score=_integer(data, "score"),
            score_breakdown=None if breakdown is None else _breakdown_from_dict(breakdown),
        )