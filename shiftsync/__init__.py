"""ShiftSync - mirrors external ICS calendar feeds into day-granular shift calendars."""

__version__ = "1.0.0"
__author__ = "ShiftSync Team"
__description__ = "External calendar synchronization engine for shift calendars"

__all__ = [
    "__author__",
    "__description__",
    "__version__",
]
