from app.models.incident import Incident, IncidentType, Priority
from app.models.vote import Vote, VoteType
from app.models.transport import Line, Stop, VehicleType
from app.models.subscription import LineSubscription, AreaSubscription
