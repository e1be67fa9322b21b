"""agentwire — streaming session engine for external coding agents."""

__version__ = "0.1.0"
