[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "huntr"
version = "0.1.0"
description = "Job-hunting pipeline: normalise and score job listings against preferences and a CV profile"
requires-python = ">=3.10"
keywords = ["jobs", "job-search", "scoring", "cv", "ollama", "embeddings"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business",
]
dependencies = [
    "requests",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
huntr-processor = "huntr.processor_service:main"

[tool.hatch.build.targets.wheel]
packages = ["huntr"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
