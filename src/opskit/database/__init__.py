"""
MySQL / PostgreSQL operations driven by a saved connection profile.
"""
