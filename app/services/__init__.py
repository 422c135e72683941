"""
Services module - contains all business logic services
"""

# Response store
from .lightweight_db_service import lightweight_db

# Core services
from .response_reconciler import response_reconciler
from .survey_chat_service import survey_chat_service
from .survey_report_service import survey_report_service

__all__ = [
    'lightweight_db',
    'response_reconciler',
    'survey_chat_service',
    'survey_report_service',
]
