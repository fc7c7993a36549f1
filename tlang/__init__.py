"""tlang — a small JIT-compiled expression language"""

__version__ = "0.1.0"
