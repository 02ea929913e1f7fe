"""
Shared plumbing: settings, audit logs, errors, external tool runner, ticker.
"""
