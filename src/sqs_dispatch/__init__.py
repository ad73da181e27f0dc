"""Bounded-concurrency SQS consumer and publisher."""

__version__ = "0.1.0"
