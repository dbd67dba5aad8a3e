"""
Inbound signal handling.

Signal models, webhook payload parsing and duplicate suppression.
"""
