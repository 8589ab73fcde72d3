"""docrecon - reconciliation and normalization of AI-extracted financial documents."""

__version__ = "0.1.0"
