[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "samsungnasa"
version = "1.0.0"
description = "Samsung air conditioner NASA protocol codec and HTTP bridge over an RS485 serial link"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["samsung", "nasa", "air-conditioner", "hvac", "rs485", "home-automation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
samsungnasa = "samsungnasa.server:main"

[tool.hatch.build.targets.wheel]
packages = ["samsungnasa"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
