"""Error alert evaluation: rule matching, windowed counting, cooldown and dispatch.

Entry point is ``error_alerting.alerting.engine.AlertEngine``; submodules are not
imported here so the ORM models can depend on ``alerting.types`` without cycles.
"""
