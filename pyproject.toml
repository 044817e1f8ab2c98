[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cattlegate"
version = "0.1.0"
description = "Admission checks for management.cattle.io resources: role template bindings, role templates, global roles, features, node drivers, fleet workspaces and pod security templates"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "admission", "webhook", "rbac", "validation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration :: Authentication/Directory",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cattlegate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
