"""
Process, resource and performance monitoring built on psutil.
"""
