# Routers module for EventPass
from eventpass.routers import registrations
from eventpass.routers import check_in
