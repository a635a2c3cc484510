"""
Setup script for quiz-allocator.

quiz-allocator hands every test-taker of a quiz a different random set of
questions from a shared question bank:

1. Quotas - flat counts or per-section distributions, validated up front
2. Disjointness - no question is given twice within a quiz generation,
   even under concurrent requests
3. Exhaustion policies - strict, recycle or best-effort when the pool runs dry

The 'quizalloc' command is the administrative entry point.
"""

from setuptools import find_packages, setup

setup(
    name="quiz-allocator",
    version="0.1.0",
    description="Concurrency-safe question-bank allocation engine for quizzes",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "quizalloc=quizalloc.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="quiz question-bank allocation education",
)
