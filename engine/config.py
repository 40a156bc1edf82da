import os

# OSRM-compatible routing backend (/table and /route)
OSRM_URL = os.getenv("OSRM_URL", "http://osrm:5000")
ROUTING_PROFILE = os.getenv("ROUTING_PROFILE", "driving")
ROUTING_TIMEOUT_S = float(os.getenv("ROUTING_TIMEOUT_S", "10"))

# Location reconciler cadences
FULL_REFRESH_INTERVAL_S = float(os.getenv("FULL_REFRESH_INTERVAL_S", "30"))
LOCATION_REFRESH_INTERVAL_S = float(os.getenv("LOCATION_REFRESH_INTERVAL_S", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
