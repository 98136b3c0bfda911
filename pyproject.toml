[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rdd2"
version = "0.1.0"
description = "Quadrotor flight-controller pieces: fixed-layout FlatBuffer topics, RC stick shaping and quad-X mixing, RC input, topic formatting and a UDP simulator bridge"
requires-python = ">=3.10"
dependencies = []
keywords = ["quadrotor", "flight-controller", "flatbuffers", "sitl", "mixer", "rc-input"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rdd2-sitl-udp = "rdd2.sitl_udp:main"

[tool.hatch.build.targets.wheel]
packages = ["rdd2"]

[tool.pytest.ini_options]
addopts = "-ra"
