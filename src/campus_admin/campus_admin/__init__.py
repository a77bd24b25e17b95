"""Campus administration core.

This package is organized by feature modules (attendance, fees, students, users, ...)
with a thin Flask controller layer and service/repository layers underneath.
"""
