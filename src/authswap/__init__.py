"""authswap - differential authorization testing."""

__version__ = "0.1.0"
