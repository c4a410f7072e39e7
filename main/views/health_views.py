import logging

from django.conf import settings
from django.db import connection, DatabaseError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from main.helpers.response import APIResponse

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["GET"])
def health(request):
    database = 'ok'
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except DatabaseError:
        logger.exception("Health check could not reach the database")
        database = 'unavailable'

    return APIResponse.success(
        data={
            'status': 'ok' if database == 'ok' else 'degraded',
            'database': database,
            'environment': settings.ENVIRONMENT,
        },
        message='TrackIQ API is running',
        status=200 if database == 'ok' else 503,
    )
