"""
Custodia - filter subscriptions for vigilia.

Filter handles, the poll engine that keeps them flowing, and the
per-consumer channels items are delivered through.
"""
