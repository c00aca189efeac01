"""ID Generation Utilities"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'RFL', 'TSK', 'CMT')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('RFL')
        'RFL-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_flow_id(kind: str) -> str:
    """Generate flow instance ID (RFL for sale flows, CFL for payment flows)"""
    return generate_id("RFL" if kind == "sale" else "CFL")


def generate_task_instance_id() -> str:
    """Generate task instance ID"""
    return generate_id("TSK")


def generate_assignment_id() -> str:
    """Generate assignment ID"""
    return generate_id("ASGN")


def generate_history_id() -> str:
    """Generate assignment history ID"""
    return generate_id("AHIS")


def generate_comment_id() -> str:
    """Generate comment ID"""
    return generate_id("CMT")


def generate_collapsed_id() -> str:
    """Generate collapsed task marker ID"""
    return generate_id("CLP")


def generate_default_assignment_id() -> str:
    """Generate default task assignment ID"""
    return generate_id("DASG")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
