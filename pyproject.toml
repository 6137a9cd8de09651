[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tokenledger"
version = "0.0.1"
description = "State storage layout and a JSON-RPC client and server for a token ledger chain"
requires-python = ">=3.10"
dependencies = []
keywords = ["ledger", "token", "json-rpc", "bech32", "cb58", "key-value"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tokenledger"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
