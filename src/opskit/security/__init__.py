"""
Security scanning and hardening.
"""
