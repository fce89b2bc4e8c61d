"""
Application configuration loaded from environment variables.
"""
