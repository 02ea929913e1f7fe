"""
Network diagnostics and monitoring.
"""
