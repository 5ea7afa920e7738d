from huntr.config import Preferences, RoleProfile, SkillGroup
from huntr.models import Job
from huntr.scorer import (
    match_keywords,
    match_location,
    matching_keywords,
    rank_jobs,
    score_job,
    score_jobs,
)


def test_score_job_fallback_profile():
    job = Job(title="Python Developer", skills="Python Flask React", location="Remote", salary_num=80000)
    prefs = Preferences(
        tech_stack_keywords=["Python", "Flask", "React"],
        domain_keywords=["FinTech"],
        locations=["Remote"],
        min_salary=50000,
    )
    score_job(job, prefs)
    bd = job.score_breakdown
    assert bd.tech_stack_score == 30
    assert bd.domain_score == 0
    assert bd.location_match is True and bd.location_score == 20
    assert bd.salary_threshold is True and bd.salary_score == 15
    assert job.score == 65


def test_score_job_uses_weighted_role_profile_caps():
    job = Job(title="Go Platform Engineer", skills="Go Kubernetes Terraform AWS Python React TypeScript Security")
    prefs = Preferences(
        role_profile=RoleProfile(
            primary_skills=SkillGroup(["Go", "Platform", "Engineer"], 20, 2),
            secondary_skills=SkillGroup(["Kubernetes", "Terraform", "AWS"], 8, 2),
            adjacent_skills=SkillGroup(["Python", "React", "TypeScript", "Security"], 3, 2),
        )
    )
    score_job(job, prefs)
    bd = job.score_breakdown
    assert (bd.primary_score, bd.secondary_score, bd.adjacent_score) == (40, 16, 6)
    assert bd.tech_stack_score == 62
    assert bd.tech_stack_matches == 6


def test_score_job_empty_locations():
    job = Job(title="Dev", location="London")
    score_job(job, Preferences(locations=[]))
    assert job.score_breakdown.location_score == 0
    assert job.score_breakdown.location_match is False


def test_excluded_penalty():
    prefs = Preferences(
        role_profile=RoleProfile(primary_skills=SkillGroup(["Go"], 20, 3), excluded_skills=["Django"])
    )
    job = score_job(Job(title="Go Django"), prefs)
    assert job.score_breakdown.excluded_penalty == 5
    assert job.score == 15


def test_excluded_penalty_capped_at_half():
    prefs = Preferences(
        role_profile=RoleProfile(
            primary_skills=SkillGroup(["Go"], 20, 3), excluded_skills=["Django", "Flask", "Java"]
        )
    )
    job = score_job(Job(title="Go Django Flask Java"), prefs)
    assert job.score_breakdown.excluded_penalty == 10
    assert job.score_breakdown.tech_stack_score == 10


def test_domain_ignores_description():
    prefs = Preferences(domain_keywords=["FinTech"])
    in_title = score_job(Job(title="FinTech Dev"), prefs)
    in_description = score_job(Job(title="Dev", description="FinTech"), prefs)
    assert in_title.score_breakdown.domain_score == 25
    assert in_description.score_breakdown.domain_score == 0


def test_salary_below_minimum_or_unknown():
    prefs = Preferences(min_salary=50000)
    assert score_job(Job(title="x", salary_num=40000), prefs).score_breakdown.salary_score == 0
    assert score_job(Job(title="x"), prefs).score_breakdown.salary_threshold is False


def test_rank_jobs():
    jobs = [Job(title="B Job", score=50), Job(title="A Job", score=80), Job(title="C Job", score=80)]
    rank_jobs(jobs)
    assert [j.title for j in jobs] == ["A Job", "C Job", "B Job"]


def test_score_jobs_ranks_results():
    prefs = Preferences(tech_stack_keywords=["Go"], locations=["Remote"])
    jobs = [Job(title="Java Dev", location="Office"), Job(title="Go Dev", location="Remote")]
    result = score_jobs(jobs, prefs)
    assert [j.title for j in result] == ["Go Dev", "Java Dev"]
    assert result[0].score == 30
    assert result[1].score == 0


def test_keyword_helpers():
    assert match_keywords("Go and Kubernetes", ["go", "KUBERNETES", "Rust"]) == 2
    assert match_keywords("", ["go"]) == 0
    assert matching_keywords("Go Go kubernetes", ["Go", " go ", "kubernetes", ""]) == ["go", "kubernetes"]
    assert match_location("London, UK", ["uk"]) is True
    assert match_location("Berlin", ["London"]) is False
    assert match_location("", ["London"]) is False