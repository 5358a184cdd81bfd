"""
LiveOne solar and battery telemetry collector.

Polls vendor telemetry APIs (Enphase, Selectronic/Select.Live) on
vendor-specific schedules, stores readings in a relational database, and
serves them over a small JSON API.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""
