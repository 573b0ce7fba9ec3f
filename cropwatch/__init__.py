"""CropWatch device telemetry backend."""
