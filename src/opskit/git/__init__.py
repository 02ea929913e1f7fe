"""
Git repository management.
"""
