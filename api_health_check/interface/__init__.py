"""
Interface module - Command-line entrypoints.
"""
