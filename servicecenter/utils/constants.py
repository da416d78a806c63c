from __future__ import annotations

ACTION_NEW_TICKET = "NEW_TICKET"
ACTION_JOB_COMPLETED = "JOB_COMPLETED"
ACTION_ATTENDANCE = "ATTENDANCE"
ACTION_URGENT_ALERT = "URGENT_ALERT"
ACTION_HEARTBEAT = "HEARTBEAT"
ACTION_HEALTH_CHECK = "HEALTH_CHECK"

# Rows an admin may hand-edit and push from settings.
CUSTOM_PAYLOAD_ACTIONS = (ACTION_NEW_TICKET, ACTION_JOB_COMPLETED)

SYNC_TICKET_CREATED = "ticket_created"
SYNC_TICKET_UPDATED = "ticket_updated"
SYNC_TECHNICIAN_ADDED = "technician_added"
SYNC_TECHNICIAN_UPDATED = "technician_updated"
SYNC_TECHNICIAN_REMOVED = "technician_removed"
SYNC_GENERAL_REFRESH = "general_refresh"

UNASSIGNED = "Unassigned"
PART_SEPARATOR = ", "
PART_FIELD_SEPARATOR = " | "

ROLE_USER_IDS = {
    "Admin": ("admin01", "Admin User"),
    "Controller": ("controller01", "Controller"),
    "Coordinator": ("coordinator01", "Coordinator"),
}
