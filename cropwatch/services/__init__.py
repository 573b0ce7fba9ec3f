"""Service layer modules."""

from cropwatch.services.compare_service import fetch_compare_devices
from cropwatch.services.device_service import (
    fetch_page,
    load_initial_app_state,
    record_uplink,
    register_device,
)
from cropwatch.services.history_service import (
    fetch_device_history,
    fetch_device_record,
    fetch_metric_history,
)

__all__ = [
    "fetch_page",
    "load_initial_app_state",
    "register_device",
    "record_uplink",
    "fetch_device_history",
    "fetch_device_record",
    "fetch_metric_history",
    "fetch_compare_devices",
]
