"""
Time-triggered sweeps.

Retention, market-close settlement with performance summaries, and bias
release. Invoked by an external scheduler through SweepScheduler.run.
"""
