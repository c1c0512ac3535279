#!/usr/bin/env python3
"""
kt-client Setup Script
======================
Allows installation of the kt-client package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="kt-client",
    version="0.5.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24",
        "msgpack>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "kt-client=ktclient.cli:main",
        ],
    },
)
