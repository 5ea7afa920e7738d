"""Application configuration stored as config.json."""

import json
import threading
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, get_args, get_origin

_OMIT = {"omitempty": True}
_save_lock = threading.Lock()


class ConfigError(Exception):
    """Raised when a configuration file cannot be read, parsed or written."""


@dataclass
class Source:
    """A job board to scrape."""

    name: str = ""
    url: str = ""
    dynamic: bool = False
    enabled: bool = False
    keywords: list[str] = field(default_factory=list, metadata=_OMIT)
    group: str = field(default="", metadata=_OMIT)


@dataclass
class SkillGroup:
    """Weighted scoring for a set of related skills."""

    keywords: list[str] = field(default_factory=list)
    weight: int = 0
    cap: int = 0


@dataclass
class RoleProfile:
    """Weighted skill matching and query expansion settings."""

    primary_skills: SkillGroup = field(default_factory=SkillGroup)
    secondary_skills: SkillGroup = field(default_factory=SkillGroup)
    adjacent_skills: SkillGroup = field(default_factory=SkillGroup)
    excluded_skills: list[str] = field(default_factory=list, metadata=_OMIT)
    query_terms: list[str] = field(default_factory=list, metadata=_OMIT)


def _with_defaults(group: SkillGroup, weight: int, cap: int) -> SkillGroup:
    return SkillGroup(
        keywords=list(group.keywords),
        weight=group.weight if group.weight > 0 else weight,
        cap=group.cap if group.cap > 0 else cap,
    )


@dataclass
class Preferences:
    """User scoring and filtering preferences."""

    tech_stack_keywords: list[str] = field(default_factory=list)
    domain_keywords: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    min_salary: int = 0
    work_type: list[str] = field(default_factory=list)
    role_profile: RoleProfile = field(default_factory=RoleProfile)

    def effective_role_profile(self) -> RoleProfile:
        """Return the role profile to score with, derived from tech keywords if unset."""
        rp = self.role_profile
        if (
            rp.primary_skills.keywords
            or rp.secondary_skills.keywords
            or rp.adjacent_skills.keywords
            or rp.query_terms
            or rp.excluded_skills
        ):
            return RoleProfile(
                primary_skills=_with_defaults(rp.primary_skills, 12, 3),
                secondary_skills=_with_defaults(rp.secondary_skills, 7, 4),
                adjacent_skills=_with_defaults(rp.adjacent_skills, 3, 4),
                excluded_skills=list(rp.excluded_skills),
                query_terms=list(rp.query_terms),
            )
        return RoleProfile(
            primary_skills=SkillGroup(list(self.tech_stack_keywords), 10, 4),
            secondary_skills=SkillGroup([], 6, 3),
            adjacent_skills=SkillGroup([], 3, 3),
        )


@dataclass
class SchedulerConfig:
    """When the scraper runs."""

    enabled: bool = False
    frequency: str = ""
    time: str = ""
    days: list[str] = field(default_factory=list)


@dataclass
class Scheduling:
    """Schedule settings per service."""

    scraper: SchedulerConfig = field(default_factory=SchedulerConfig)


@dataclass
class ChunkConfig:
    """CV text chunking parameters."""

    enabled: bool = False
    chunk_size: int = 0
    chunk_overlap: int = 0
    top_k_chunks: int = 0


@dataclass
class VectorConfig:
    """Vector database settings."""

    max_collections: int = 0
    auto_rotate: bool = False
    active_collection: str = field(default="", metadata=_OMIT)


@dataclass
class CVConfig:
    """CV processing settings."""

    chunked_processing: ChunkConfig = field(default_factory=ChunkConfig)
    vector_db: VectorConfig = field(default_factory=VectorConfig)
    llm_model: str = field(default="", metadata=_OMIT)
    embedding_model: str = field(default="", metadata=_OMIT)


@dataclass
class EmailConfig:
    """SMTP connection settings."""

    smtp_server: str = ""
    smtp_port: int = 0


@dataclass
class Config:
    """The full application configuration."""

    job_sources: list[Source] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    scheduling: Scheduling = field(default_factory=Scheduling)
    cv: CVConfig = field(default_factory=CVConfig)
    email_enabled: bool = False
    email_config: EmailConfig = field(default_factory=EmailConfig)
    high_score_threshold: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        return _decode(cls, data, "")


def _encode(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if f.metadata.get("omitempty") and not value:
            continue
        out[f.name] = _encode_value(value)
    return out


def _encode_value(value: Any) -> Any:
    if is_dataclass(value):
        return _encode(value)
    if isinstance(value, list):
        return [_encode_value(item) for item in value]
    return value


def _join(where: str, name: str) -> str:
    return f"{where}.{name}" if where else name


def _decode(cls: type, data: Any, where: str) -> Any:
    if not isinstance(data, dict):
        raise ConfigError(f"{where or 'config'}: expected a JSON object")
    values = {
        f.name: _coerce(f.type, data[f.name], _join(where, f.name))
        for f in fields(cls)
        if f.name in data
    }
    return cls(**values)


def _coerce(kind: Any, value: Any, where: str) -> Any:
    if get_origin(kind) is list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ConfigError(f"{where}: expected a list")
        (item_kind,) = get_args(kind)
        return [_coerce(item_kind, item, f"{where}[{i}]") for i, item in enumerate(value)]
    if value is None:
        return kind()
    if is_dataclass(kind):
        return _decode(kind, value, where)
    if kind is bool:
        if not isinstance(value, bool):
            raise ConfigError(f"{where}: expected a boolean")
        return value
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{where}: expected an integer")
        return value
    if kind is str:
        if not isinstance(value, str):
            raise ConfigError(f"{where}: expected a string")
        return value
    raise ConfigError(f"{where}: unsupported field type")


def default() -> Config:
    """Return the built-in default configuration."""
    return Config(
        job_sources=[
            Source(
                name="Reed",
                url="https://www.reed.co.uk/jobs/software-developer-jobs-in-london?remote=true",
                enabled=True,
                group="general-job-boards",
            ),
            Source(
                name="Indeed",
                url="https://uk.indeed.com/jobs?q=Software+Engineer+Remote&l=United+Kingdom",
                enabled=True,
                group="general-job-boards",
            ),
            Source(
                name="Adzuna",
                url="https://www.adzuna.co.uk/jobs/search?q=software+engineer+remote",
                enabled=True,
                group="general-job-boards",
            ),
            Source(
                name="Technojobs",
                url="https://www.technojobs.co.uk/jobs/software-engineer",
                enabled=True,
                group="tech-specialist-agencies",
            ),
            Source(
                name="CV-Library",
                url="https://www.cv-library.co.uk/jobs/software-engineer/remote",
                enabled=True,
                group="general-job-boards",
            ),
            Source(
                name="Totaljobs",
                url="https://www.totaljobs.com/jobs/software-engineer/in-united-kingdom?remote=true",
                enabled=True,
                group="general-job-boards",
            ),
        ],
        preferences=Preferences(
            tech_stack_keywords=[
                "Go", "Platform", "Infrastructure", "DevOps", "Cloud",
                "Kubernetes", "Docker", "APIs", "Microservices",
            ],
            domain_keywords=["FinTech", "E-commerce", "SaaS", "Transport", "Payments", "Healthcare"],
            locations=["Remote", "100% Remote", "Hybrid", "London", "Manchester", "UK", "Europe"],
            min_salary=100000,
            work_type=["100% Remote", "Hybrid"],
            role_profile=RoleProfile(
                primary_skills=SkillGroup(
                    keywords=["Go", "Platform Engineering", "Infrastructure", "DevOps"],
                    weight=18,
                    cap=3,
                ),
                secondary_skills=SkillGroup(
                    keywords=["Kubernetes", "Terraform", "AWS", "GCP", "CI/CD", "Observability", "SRE"],
                    weight=10,
                    cap=4,
                ),
                adjacent_skills=SkillGroup(
                    keywords=["Python", "React", "TypeScript", "Data Engineering", "Security"],
                    weight=4,
                    cap=4,
                ),
                excluded_skills=["Senior Python Developer", "Django-only"],
                query_terms=[
                    "Go developer remote",
                    "Platform engineer remote",
                    "DevOps engineer remote",
                    "Site reliability engineer remote",
                    "Infrastructure engineer remote",
                    "Cloud engineer remote",
                ],
            ),
        ),
        scheduling=Scheduling(
            scraper=SchedulerConfig(
                frequency="daily",
                time="09:00",
                days=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
            )
        ),
        cv=CVConfig(
            chunked_processing=ChunkConfig(enabled=True, chunk_size=600, chunk_overlap=120, top_k_chunks=5),
            vector_db=VectorConfig(max_collections=3, auto_rotate=True),
        ),
        email_enabled=True,
        high_score_threshold=70,
    )


def load(path: str | Path) -> Config:
    """Read and parse a config.json file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"config: read {path}: {exc}") from exc
    try:
        return Config.from_dict(json.loads(text))
    except (ValueError, ConfigError) as exc:
        raise ConfigError(f"config: parse {path}: {exc}") from exc


def save(path: str | Path, cfg: Config) -> None:
    """Write the configuration as indented JSON with a trailing newline."""
    with _save_lock:
        text = json.dumps(cfg.to_dict(), indent=2, ensure_ascii=False) + "\n"
        try:
            Path(path).write_text(text, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"config: write {path}: {exc}") from exc