"""
Board Export: walk a virtualized kanban board and export every task with its
full comment history, grouped by column.
"""

__version__ = "0.1.0"
