"""
Text processing utilities.
"""
