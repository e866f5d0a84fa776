#!/usr/bin/env python3
"""
mredis Setup Script
===================
Allows installation of the mredis package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="mredis",
    version="1.0.0",
    packages=find_packages(include=["mredis", "mredis.*"]),
    python_requires=">=3.10",
    install_requires=[
        "redis>=5.0.1",
        "pymemcache>=4.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mredis=mredis.cli:main",
        ],
    },
)
