"""
Trade state module.

Manages the single-active-trade lifecycle (OPEN -> PARTIAL -> CLOSED) and the
append-only archive of closed trades.
"""
