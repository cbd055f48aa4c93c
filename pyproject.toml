[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sipstack"
version = "0.1.0"
description = "SIP building blocks: URIs, addresses, reference-counted UDP/TCP/WebSocket connections, a connection pool, transaction state tables and DNS resolution."
requires-python = ">=3.10"
keywords = ["sip", "voip", "rfc3261", "rfc6026", "transaction", "transport", "websocket", "srv"]
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
    "Topic :: Communications :: Internet Phone",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "dnspython",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["sipstack"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
