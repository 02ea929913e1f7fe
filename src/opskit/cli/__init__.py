"""
Typer sub-apps for each opskit tool and the helpers they share.
"""
