"""Setup configuration for flexbuild."""

from setuptools import setup, find_packages

setup(
    name="flexbuild",
    version="0.1.0",
    description="Dependency classification and test-run orchestration for Flex projects",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "flexbuild.runner": ["templates/*.xml"],
    },
    python_requires=">=3.11",
    install_requires=[
        "requests>=2.31.0",
        "pyyaml>=6.0",
        "click>=8.1.0",
        "structlog>=24.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "flexbuild=flexbuild.cli:main",
        ],
    },
)
