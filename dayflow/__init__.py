"""Dayflow HR — employee directory, attendance, leave and payroll API."""

__version__ = "1.0.0"
