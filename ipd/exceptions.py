import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from ipd.errors import IPDError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, IPDError):
        if exc.status_code >= 409:
            logger.warning("%s: %s", exc.code, exc)
        return Response({'ok': False, 'error': exc.payload()}, status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("unhandled error in %s", context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
