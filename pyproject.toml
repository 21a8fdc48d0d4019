[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "adsrouter"
version = "0.1.0"
description = "Finds a PLC on the local network by TCP port fingerprint and accepts ADS client connections on its behalf"
requires-python = ">=3.11"
keywords = ["ads", "twincat", "plc", "router", "proxy", "port-scan", "fingerprint"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Manufacturing",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
adsrouter = "adsrouter.main:main"

[tool.hatch.build.targets.wheel]
packages = ["adsrouter"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
