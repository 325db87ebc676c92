"""CLI layer: command tree, argument parsing, user output, and error boundary.

This package is the outermost layer of the application.  It may import
from ``core``, ``infra``, and ``utils``, but no other layer may import
from ``cli``.
"""
