# fixflow/prompts/__init__.py
"""Prompt and message texts, kept out of the engine code"""

from . import engine_messages
from . import interpreter_prompts

__all__ = [
    'engine_messages',
    'interpreter_prompts',
]
