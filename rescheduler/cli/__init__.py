"""
CLI Tools for Operation and Development
"""

from .reschedule_cli import RescheduleCLI

__all__ = [
    "RescheduleCLI"
]
