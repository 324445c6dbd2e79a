"""
Service layer.

The pure modules (``field_model``, ``voting_store``, ``merge``,
``suggestions``, ``consolidation``, ``aggregates``) hold the voting
rules and never touch the database.  The ``*_service`` modules load and
store documents in SQLite and call into the pure modules.
"""
