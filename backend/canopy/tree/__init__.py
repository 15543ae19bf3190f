"""
Canopy Backend: Tree Engine
============================

Pure, storage-free building blocks of the item hierarchy:

    paths       materialized path encoding and prefix arithmetic
    invariants  structural limits checked before any mutation
    resolver    effective permissions and membership reconciliation

Nothing in this package touches the database; services feed it rows and apply
what it returns.
"""
