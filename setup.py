"""Setuptools build hooks for vexpr."""

from __future__ import annotations

from setuptools import setup

# Pure Python package; project metadata lives in pyproject.toml.
setup()
