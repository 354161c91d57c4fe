"""
ROUTERS - FastAPI Router Modules

One router per engine concern.

Usage:
    from routers import edge_router, grader_router

    app.include_router(edge_router)
    app.include_router(grader_router)
"""

from .consensus import router as consensus_router
from .edge import router as edge_router
from .grader import router as grader_router
from .performance import router as performance_router
from .triggers import router as triggers_router

__all__ = [
    'consensus_router',
    'edge_router',
    'grader_router',
    'performance_router',
    'triggers_router',
]
