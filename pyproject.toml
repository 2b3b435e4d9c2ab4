[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hsmkit"
version = "0.1.0"
description = "Payment HSM building blocks: DES/AES key handling, EMV cryptograms, MACs and Thales-style key blocks"
requires-python = ">=3.10"
keywords = ["hsm", "emv", "des", "3des", "aes", "cmac", "key-block", "arqc", "arpc", "payments"]
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
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["hsmkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
