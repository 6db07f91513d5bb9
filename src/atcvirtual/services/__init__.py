"""Services for ATC Virtual."""
