"""
Core modules for AI Credit Router.

This package contains the routing table, credit calculation,
token accounting and the error taxonomy.
"""
