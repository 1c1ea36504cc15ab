[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "omninews"
version = "0.1.0"
description = "RSS channel and item storage, embedding-based search and feed discovery for a news reader backend"
requires-python = ">=3.10"
keywords = ["rss", "feed", "news", "embedding", "search", "feed-discovery", "mysql"]
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
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
]
dependencies = [
    "requests",
    "beautifulsoup4",
    "numpy",
    "pymysql",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["omninews"]

[tool.pytest.ini_options]
addopts = "-ra"
