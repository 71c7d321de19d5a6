"""
LabValet builtin tools

Each ``register_*`` function adds its tools to the given registry, bound to
the clients it needs.
"""

from .google_docs import register_google_docs_tools
from .labs import register_lab_tools
from .notion import register_notion_tools
from .scheduling import register_scheduling_tools

__all__ = [
    "register_google_docs_tools",
    "register_lab_tools",
    "register_notion_tools",
    "register_scheduling_tools",
]
