[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "taprelay"
version = "0.1.0"
description = "MQTT-controlled beverage tap: pour state machine, flow metering and status LEDs"
requires-python = ">=3.10"
dependencies = [
    "paho-mqtt",
]
keywords = ["mqtt", "tap", "flowmeter", "state-machine", "home-automation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
taprelay = "taprelay.controller:main"

[tool.hatch.build.targets.wheel]
packages = ["taprelay"]

[tool.pytest.ini_options]
addopts = "-ra"
