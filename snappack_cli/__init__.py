"""
snappack-cli: pulls media from a Saved Media export to local storage and keeps
a validated, browsable library of it.
"""

__version__ = "1.0.0"
