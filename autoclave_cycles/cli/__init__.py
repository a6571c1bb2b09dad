"""
Command Line Interface Package for Autoclave Cycles Client

This package provides a modular CLI implementation with separated concerns:
- args.py: Argument parsing and validation
- formatters.py: Output formatting for the different commands
- logging_setup.py: Logging configuration
- main.py: Main orchestration and entry point

License: MIT
"""

from .main import main

__all__ = ["main"]
