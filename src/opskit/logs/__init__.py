"""
Log analysis and follow mode.
"""
