[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fleetsrv"
version = "0.1.0"
description = "Building blocks for a fleet server: document models, Elasticsearch query DSL and templates, response and error decoding, checkpoint requests, request limiting, policy coordination, subscriptions and ECS request logging."
requires-python = ">=3.10"
dependencies = []
keywords = ["fleet", "elasticsearch", "query-dsl", "policy", "coordinator", "wsgi", "ecs"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["fleetsrv"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
