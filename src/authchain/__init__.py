"""Authentication chain links for FastAPI / Starlette applications"""

__version__ = "1.0.0"
