"""Attendance: check in/out, day records, summaries and regularization."""
