"""
Configuration loading and validation.

Provides strongly typed settings objects loaded from environment variables
and .env files, validated up front.
"""
