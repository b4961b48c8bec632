"""SQLAlchemy ORM Models for Counselboard Database Schema"""
from counselboard.models.counseling_session import CounselingSession
from counselboard.models.follow_up import CounselingFollowUp
from counselboard.models.session_participant import SessionParticipant
from counselboard.models.student import Student

__all__ = [
    "CounselingSession",
    "CounselingFollowUp",
    "SessionParticipant",
    "Student",
]
