"""
Entry point for running docvault as a module.

Usage:
    python -m docvault [command] [options]
"""

from docvault.cli import main

if __name__ == "__main__":
    main()
