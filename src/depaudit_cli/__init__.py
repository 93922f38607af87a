# depaudit_cli/__init__.py
"""
Dependency Audit CLI package
"""

__version__ = "0.1.0"

__all__ = ['__version__']
