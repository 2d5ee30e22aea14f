"""
Errors raised by the conversation core.

Every error carries a stable ``code`` and the HTTP status the API layer
renders it with, so callers can tell each condition apart.
"""

import functools
import logging

from django.db import DatabaseError

logger = logging.getLogger(__name__)


class ConversationError(Exception):
    status_code = 400
    code = "conversation_error"
    default_message = "Conversation operation failed"

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        data = {"error": self.message, "code": self.code}
        data.update(self.context)
        return data


# Authorization


class AuthorizationError(ConversationError):
    status_code = 403
    code = "not_authorized"
    default_message = "You are not allowed to do that"


class NotAMember(AuthorizationError):
    code = "not_a_member"
    default_message = "User is not a member of this conversation"


class NotAuthorized(AuthorizationError):
    code = "not_authorized"
    default_message = "Only the group creator can do that"


class CreatorMustDelete(AuthorizationError):
    code = "creator_must_delete"
    default_message = "The group creator cannot leave or be removed; delete the group instead"


# Validation


class InvalidInput(ConversationError):
    status_code = 400
    code = "invalid_input"


class InvalidGroupName(InvalidInput):
    code = "invalid_group_name"
    default_message = "Group name must not be empty"


class EmptyMemberSet(InvalidInput):
    code = "empty_member_set"
    default_message = "A group needs at least one member besides its creator"


class DuplicateMembers(InvalidInput):
    code = "duplicate_members"
    default_message = "Member list contains duplicates"


class InvalidParticipants(InvalidInput):
    code = "invalid_participants"
    default_message = "A direct conversation needs two different users"


class EmptyMessage(InvalidInput):
    code = "empty_message"
    default_message = "Message must have content or an attachment"


class InvalidAttachment(InvalidInput):
    code = "invalid_attachment"
    default_message = "Attachment reference is invalid"


class NotAGroup(InvalidInput):
    code = "not_a_group"
    default_message = "This operation is only available for group conversations"


# Conflicts


class ConflictError(ConversationError):
    status_code = 409
    code = "conflict"


class AlreadyMember(ConflictError):
    code = "already_member"
    default_message = "User is already a member of this conversation"


# Not found


class NotFound(ConversationError):
    status_code = 404
    code = "not_found"


class ConversationNotFound(NotFound):
    code = "conversation_not_found"
    default_message = "Conversation not found"


class MessageNotFound(NotFound):
    code = "message_not_found"
    default_message = "Message not found"


# Consistency and infrastructure


class CascadeStepFailed(ConversationError):
    """A group delete stopped part way; calling it again resumes at ``step``."""

    status_code = 500
    code = "cascade_step_failed"
    default_message = "Group deletion did not complete"

    def __init__(self, conversation_id, step, message=None):
        self.conversation_id = conversation_id
        self.step = step
        super().__init__(
            message or f"Group deletion stopped at step '{step}'",
            conversation_id=conversation_id,
            step=step,
        )


class InfrastructureError(ConversationError):
    status_code = 503
    code = "infrastructure_error"
    default_message = "Storage is unavailable, try again later"


def translate_storage_errors(func):
    """Re-raise unattributable database failures as ``InfrastructureError``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.error(f"Storage failure in {func.__qualname__}: {e}")
            raise InfrastructureError() from e

    return wrapper
