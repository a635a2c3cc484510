"""Concurrency-safe question-bank allocation for quizzes."""

__version__ = "0.1.0"
