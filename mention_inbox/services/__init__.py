"""Service layer for business logic and database operations."""

from .database import DatabaseService, close_db_service, get_db_service, init_db_service
from .directory import MembershipDirectory
from .mention_log import ByAccount, ByMember, GroupedMention, MentionLog
from .mention_service import LOADER_SOURCE, GroupedMentionSource, MentionService, scope_for

__all__ = [
    "ByAccount",
    "ByMember",
    "DatabaseService",
    "GroupedMention",
    "GroupedMentionSource",
    "LOADER_SOURCE",
    "MembershipDirectory",
    "MentionLog",
    "MentionService",
    "close_db_service",
    "get_db_service",
    "init_db_service",
    "scope_for",
]
