[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ctrltools"
version = "0.1.0"
description = "Marker comment parsing, RBAC role generation, CRD schema patching and type scaffolding for Kubernetes-style APIs"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "kubernetes",
    "markers",
    "rbac",
    "crd",
    "code-generation",
    "scaffolding",
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
    "Topic :: Software Development :: Code Generators",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ctrltools"]

[tool.pytest.ini_options]
addopts = "-ra"
