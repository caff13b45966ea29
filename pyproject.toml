[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pdfops"
version = "0.1.0"
description = "PDF content stream parsing and serialization, stream filters and font encodings"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["pdf", "content-stream", "ascii85", "flate", "lzw", "parser"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: File Formats",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["pdfops"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
