"""Workflow engine components.

- Settings loaded from .env
- Structured logging
- Session state persistence
- The workflow state machine and the task batch planner
- A small CLI surface
"""
