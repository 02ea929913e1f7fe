"""
Docker container and image management through the docker CLI.
"""
