"""Redmine CLI for agents and pipelines"""

__version__ = "0.1.0"
