"""
Workflow Kernel

Lifecycle management for business documents through a reusable
finite-state-machine schema:
- Named states with enter/exit hooks
- Event-triggered, guarded transitions with ordered candidates
- Ordered, possibly async, side-effecting actions
- Typed errors and structured logging
"""

__version__ = "0.1.0"
