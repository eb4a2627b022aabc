"""Concurrency primitives for fan-out execution."""

from .pool import BoundedGroup

__all__ = ["BoundedGroup"]
