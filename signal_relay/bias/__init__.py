"""
Bias alert scheduling.

Queues opening-bias alerts received before the daily cutoff and releases at
most one per session day.
"""
