"""Command-line interface for tracerbox."""
