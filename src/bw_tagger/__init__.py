"""Black & white photo detection and tagging for Lychee libraries."""

__version__ = "0.1.0"
