"""
Core file-sharing logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns.
"""
