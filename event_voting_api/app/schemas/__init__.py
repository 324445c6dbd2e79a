"""
Pydantic schema definitions for API payloads.

Each area (events, custom fields, responses, aggregates, finalization)
defines its own models.  Schemas double as the stored document shapes,
so their camelCase aliases are the wire contract with the UI.
"""
