# hunt_lifecycle/crud/__init__.py

from .crud_hunt import hunt
from .crud_hunt_participant import hunt_participant
