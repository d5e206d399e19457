[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatgate"
version = "0.1.0"
description = "HTTP gateway and status service for a chat system: verification codes, registration, login and chat-server selection"
requires-python = ">=3.10"
keywords = ["chat", "gateway", "redis", "http", "login", "status"]
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
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
chatgate-gate = "chatgate.gate_server:main"

[tool.hatch.build.targets.wheel]
packages = ["chatgate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
