"""Last-known-position hub for a single solar GPS tracker."""
import time

# Clients compare this against the value they saw before to detect restarts
STARTUP_TIMESTAMP: int = int(time.time())
