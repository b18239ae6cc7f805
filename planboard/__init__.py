"""
Planboard - project management API with hierarchical tasks and kanban boards.
"""

__version__ = "0.1.0"
