[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trunk"
version = "0.1.0"
description = "Build and bundle a Rust WASM web application and its assets from a source HTML file."
requires-python = ">=3.11"
keywords = ["wasm", "webassembly", "bundler", "build", "web", "assets", "sass", "wasm-bindgen"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "beautifulsoup4",
    "platformdirs",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
trunk = "trunk.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["trunk"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
