"""
PLM - project lifecycle manager.

Moves generated projects through VOID -> DRAFT -> BUILT -> OFFLINE -> ONLINE
with one workflow engine per transition. Entry points live in
`plm.workflows`; the state machine itself in `plm.state` and
`plm.transitions`.
"""

__version__ = "0.1.0"
