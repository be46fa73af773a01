[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "simpleoneapi"
version = "0.1.0"
description = "Helpers for an OpenAI-compatible API gateway: message handling, rate limiting, SSE streaming and LLM translation"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = ["openai", "llm", "gateway", "sse", "rate-limiting", "translation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["simpleoneapi"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
