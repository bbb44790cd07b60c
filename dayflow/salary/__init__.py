"""Salary structures, the breakdown engine and monthly payroll."""
