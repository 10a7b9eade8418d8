"""Anonymous relay subsystem.

Self-contained modules:
- aliases (live sessions, alias allocation)
- records (retention-bounded reverse lookup of delivered messages)
- proxy_pool (per-channel send-as endpoints, least recently used recycled first)
- content_filter (banned terms)
- coordinator (sessions, delivery, merge decisions, suppression)

Suppressions themselves are durable and live in services.suppression_store.
"""
