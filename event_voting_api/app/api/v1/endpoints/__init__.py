"""
Endpoint subpackage for API v1.

Each module defines an APIRouter for one concern (events, responses,
finalization).  Handlers translate service errors into HTTP errors and
otherwise contain no logic.
"""
