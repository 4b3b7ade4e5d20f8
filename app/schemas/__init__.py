from app.schemas.geo import Coordinate
from app.schemas.incident import (
    Incident, IncidentCreate, IncidentFilters, IncidentWithVotes, IncidentOnRoute,
    PaginatedIncidents, RouteQuery, LineAnchor, StopAnchor, Anchor, resolve_anchor,
)
from app.schemas.vote import Vote, VoteCreate
from app.schemas.transport import Line, Stop
from app.schemas.subscription import (
    LineSubscription, LineSubscriptionCreate, AreaSubscription, AreaSubscriptionCreate,
)
