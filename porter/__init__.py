"""Porter dispatch core: order lifecycle, assignment and live updates."""

__version__ = "0.1.0"
