"""
Meeting Reminder

Watches a calendar for the next meeting and drives a light/buzzer alert a
configurable lead time before it starts (or ends).
"""

__version__ = "0.3.0"
