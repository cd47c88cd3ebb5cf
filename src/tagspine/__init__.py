"""tagspine: a shared per-platform tag directory for chat bots."""

__version__ = "0.1.0"
