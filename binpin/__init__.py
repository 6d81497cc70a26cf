"""binpin — pin auxiliary Go tools as independent module files."""

__version__ = "0.1.0"
