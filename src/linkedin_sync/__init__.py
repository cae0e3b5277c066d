# ABOUTME: Main package initialization for the LinkedIn connection sync tool.
# ABOUTME: Exports version information from the installed distribution metadata.

from importlib.metadata import version

__version__ = version("linkedin-sync")
