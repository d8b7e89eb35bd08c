[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "casework"
version = "0.1.0"
description = "Event-sourced case handling: subjects, work items with timelines and notes, and an architecture boundary checker."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "event-sourcing",
    "cqrs",
    "case-management",
    "work-items",
    "architecture",
    "boundaries",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
casework-archtest = "casework.archtest.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["casework"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
