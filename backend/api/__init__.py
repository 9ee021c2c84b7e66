"""HTTP routes for the sensorlog backend."""
