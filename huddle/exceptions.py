import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from conversations.exceptions import ConversationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Render conversation core errors as ``{"error": ..., "code": ...}`` with
    the status each error class declares; everything else goes to DRF.
    """
    if isinstance(exc, ConversationError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} in {context['view'].__class__.__name__}: {exc.message}")
        return Response(exc.as_dict(), status=exc.status_code)

    return exception_handler(exc, context)
