"""
Utility functions package.
"""
