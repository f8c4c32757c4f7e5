[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zpatterns"
version = "0.1.0"
description = "Protocol logic for reliable messaging patterns over multipart-frame sockets: Majordomo, Titanic, Paranoid Pirate, Freelance, load balancing, last value cache and key-value messages"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "messaging",
    "majordomo",
    "broker",
    "load-balancing",
    "heartbeat",
    "key-value",
    "request-reply",
    "pub-sub",
    "multipart",
]
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
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zpatterns"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
