"""
Backend package for blockboard.

This package provides a FastAPI application that stores dashboards and
their blocks, keeps per-user OAuth accesses, and proxies GitHub API calls
through a response cache. The ``blocks`` subpackage holds the widget
registry and the data fetchers used to render a dashboard.
"""
