"""
Services module for business logic separation.

Read log storage, PV/UV aggregation, the stats cache and the services the
webhook handlers delegate to. Nothing here depends on the routes document.
"""
