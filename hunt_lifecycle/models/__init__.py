# hunt_lifecycle/models/__init__.py

from .hunt import Hunt
from .hunt_participant import HuntParticipant
