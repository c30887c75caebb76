"""Event and notification history resources."""
