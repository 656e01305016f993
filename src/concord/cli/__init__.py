"""Command-line interface (``concord``)."""
