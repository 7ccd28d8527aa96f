"""
SalaryTalk — Telemetry
"""

from salarytalk.telemetry.logging import setup_logging

__all__ = ["setup_logging"]
