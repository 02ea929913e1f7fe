"""
Directory backups with rotation.
"""
