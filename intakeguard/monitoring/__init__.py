"""
Operational monitoring for the review queue.

- sla: paid intakes waiting past the queue SLA
- health: database, cache and payment provider probes
- alerts: Sentry-backed alert sink and the per-key cooldown throttle

These alerts go to operators; clinical decisions are recorded separately in
the compliance ledger.
"""
