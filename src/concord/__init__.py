"""
concord - capability units wired together by a synchronization engine.

Units expose named operations; the engine turns every completed operation
into an action record, matches it against declarative synchronization
rules, and lets rules invoke further operations. A FastAPI layer exposes
the operations over HTTP, either directly (passthrough) or through the
Requesting mediator.

Tags:
    concord, units, synchronization, engine, dispatch

Doc-Types:
    api-reference
"""

__version__ = "0.1.0"
