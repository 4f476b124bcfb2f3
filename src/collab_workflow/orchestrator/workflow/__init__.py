"""Workflow state machine.

This package holds:
- Session and work-item models
- Transition guards and their evaluator
- The work-item status lifecycle
- Declarative state tables for both topologies
- The transition resolver and the skill-completion driver

Control flow is data: states and guards are declared in `registry`, and
`transitions` interprets them against a read-only session snapshot.
"""

__all__: list[str] = []
