"""License and copyright compliance-analysis core."""

__version__ = "0.1.0"
