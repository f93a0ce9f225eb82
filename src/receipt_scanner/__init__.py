"""
ReceiptScanner
==============

Session engine for guided receipt scanning.

A user holds a phone over a receipt and moves it downward; this package
decides, tick by tick, whether the capture is progressing or whether the
user must correct something (too fast, shaky, glare, ...), and projects the
session onto a render-ready UI model.

Components:
    - models: Signal, SessionState, events, UI model
    - signals: Normalization, merging and demo simulation of raw signals
    - agent: Reducer, fault rules, motion debouncer, LangGraph tick planner
    - session: ScanSessionDriver and camera permissions
    - sources: Subscribable raw signal producers (in-process, WebSocket)
    - observability: SessionState → UiModel projection

Example:
    from receipt_scanner.session import ScanSessionDriver

    # The HTTP service is started via FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "ReceiptScanner Project"

__all__ = [
    "__version__",
]
