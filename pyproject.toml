[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "homovote"
version = "0.1.0"
description = "Weighted electronic voting with homomorphic encryption, threshold key sharing and signed ballots"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "voting",
    "election",
    "homomorphic-encryption",
    "bfv",
    "shamir",
    "secret-sharing",
    "pki",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
homovote-admin = "homovote.admin:main"
homovote-voter = "homovote.voter:main"
homovote-tally = "homovote.tally:main"
homovote-counter = "homovote.counter:main"

[tool.hatch.build.targets.wheel]
packages = ["homovote"]

[tool.hatch.build.targets.sdist]
include = [
    "homovote",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
