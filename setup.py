#!/usr/bin/env python3
"""
Setup script for the planning scenario engine
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="planning-scenarios",
    version="1.0.0",
    description="What-if scenario snapshots and scenario-vs-live comparison for planning data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["planning_scenarios", "planning_scenarios.*"]),
    py_modules=["manage_scenarios"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "manage-scenarios=manage_scenarios:main",
        ],
    },
    include_package_data=True,
    package_data={
        "planning_scenarios": ["*.yaml"],
    },
)
