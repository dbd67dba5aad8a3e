"""
Utility functions module.

Time Semantics:
- Stored timestamps are epoch milliseconds in UTC
- Session logic (bias cutoff, entry window, archive dates) is evaluated in the
  configured session time zone
- Every function takes the instant explicitly so it can be tested without a clock
"""
