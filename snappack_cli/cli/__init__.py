"""
Command-Line Layer.

Typer commands, the Rich live progress display, and console formatters.
"""
