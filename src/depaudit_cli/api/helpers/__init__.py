# depaudit_cli/api/helpers/__init__.py

from .api_base import APIBase

__all__ = ['APIBase']
