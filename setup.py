#!/usr/bin/env python3
# setup.py: installs the repo-manager command
#
# Install:
#   pip install -e .            (add [test] for pytest)
#
# Run:
#   repo-manager --help
#   python main.py

from setuptools import setup, find_packages

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Branch and pull-request management across microservice repositories"

setup(
    name="microservice-repo-manager",
    version="1.0.0",
    description="Branch and pull-request management across microservice repositories",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=["main"],
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "colorama>=0.4.6",
        "keyring>=25.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "repo-manager=repo_manager.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control :: Git",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
