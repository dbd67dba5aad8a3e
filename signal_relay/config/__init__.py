"""
Relay configuration.

Frozen dataclass defaults, YAML file overrides and environment overrides for
channel secrets, merged by ConfigLoader.
"""
