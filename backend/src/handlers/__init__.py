"""Lambda handlers for the ParkCheck backend."""
