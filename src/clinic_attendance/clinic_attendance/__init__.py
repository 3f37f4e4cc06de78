"""Clinic Attendance package.

This package is organized by feature modules (schedules, geofence, tokens,
attendance, reports) with a thin Flask controller layer over service and
repository layers.
"""
