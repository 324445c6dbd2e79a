"""Event voting API: collaborative scheduling polls with organizer finalization."""
