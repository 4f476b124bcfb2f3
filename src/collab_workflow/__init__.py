"""Collab workflow engine.

Sequences an AI-assisted development session through goal gathering,
brainstorming, rough-draft design, batched execution and cleanup, and plans
declared tasks into dependency-respecting execution batches.
"""

__version__ = "0.1.0"

from collab_workflow.orchestrator.config import CollabSettings

__all__ = ["__version__", "CollabSettings"]
