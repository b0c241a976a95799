"""
Entry point for running the CLI as a module.

Usage: python -m koala_wiki.cli
"""
from .main import run

if __name__ == "__main__":
    run()
