"""Command line interface modules.

This package provides the command-line entry point that:
- Reads configuration from options and environment variables
- Configures logging
- Starts the SOCKS5 listener
- Reports fatal startup errors
"""
