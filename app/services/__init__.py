"""Vault business logic.

Services flush but never commit; routes wrap each call in
`app.database.unit_of_work` so the audit row, the outbox events and the state
change land in one transaction.
"""
