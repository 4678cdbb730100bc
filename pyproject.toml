[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "faultbench"
version = "1.0.0"
description = "Modbus RTU polling daemon and three-stage fault test controller for a relay test bench"
requires-python = ">=3.10"
dependencies = []
keywords = ["modbus", "rtu", "relay testing", "fault simulation", "hmi", "automation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Manufacturing",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Human Machine Interfaces",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
faultbench = "faultbench.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["faultbench"]

[tool.pytest.ini_options]
addopts = "-ra"
