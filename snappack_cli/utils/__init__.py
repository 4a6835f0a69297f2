"""
Utility helpers: manifest parsing, URL and path handling, and display formatting.
"""
