[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "claudesdk"
version = "0.1.1"
description = "File handling, retry policies and server-sent event streaming for Claude API clients"
requires-python = ">=3.10"
keywords = ["anthropic", "claude", "api", "sse", "retry", "files"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["claudesdk"]

[tool.pytest.ini_options]
addopts = "-ra"
