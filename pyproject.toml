[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kterminus"
version = "0.1.0"
description = "Orchestrator daemon and wire protocol for multiplexing terminal sessions over reverse SSH tunnels"
requires-python = ">=3.11"
keywords = ["ssh", "terminal", "reverse-tunnel", "multiplexing", "orchestrator", "framing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "paramiko>=3.0",
    "platformdirs>=3.0",
    "tomli-w>=1.0",
    "cryptography>=41.0",
]

[project.optional-dependencies]
test = ["pytest>=7.0"]

[project.scripts]
kt-orchestrator = "kterminus.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["kterminus"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
