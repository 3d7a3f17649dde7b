"""
ToDo data access package.

Exposes the to-do item model and its data access object; the FastAPI app
lives in todo_api.main.
"""

from .dao import ToDoItemDAO  # noqa: F401
from .models import ToDoItem  # noqa: F401

__version__ = "0.1.0"
