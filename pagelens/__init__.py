"""pagelens: AI-readiness analysis for single web pages."""

__version__ = "0.1.0"
