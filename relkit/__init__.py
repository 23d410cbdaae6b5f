"""relkit: resumable release and dependency workflows."""

__version__ = "0.3.0"
