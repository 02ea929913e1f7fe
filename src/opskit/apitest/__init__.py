"""
REST API testing: single requests, test suites, monitoring and benchmarks.
"""
