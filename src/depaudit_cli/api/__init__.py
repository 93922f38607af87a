# depaudit_cli/api/__init__.py
"""
HTTP clients used by the dependency audit pipeline.
"""

from .cve_api import CustomCveAPI
from .openai_api import OpenAIAPI

__all__ = ['CustomCveAPI', 'OpenAIAPI']
