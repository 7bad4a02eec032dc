"""OJT Tracker package.

This package is organized by feature modules (students, shifts, schedules,
attendance, hours) with a thin Flask controller layer on top of the
schedule resolution and hours computation services.
"""
