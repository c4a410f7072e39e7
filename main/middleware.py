"""
Keeps ``/api/`` responses in the JSON envelope even when a view raises or no
route matches.
"""

from django.http import Http404

from main.helpers.response import APIResponse, handle_service_error


class JSONOnlyMiddleware:
    API_PREFIX = '/api/'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if (
            request.path.startswith(self.API_PREFIX)
            and response.status_code == 404
            and not response.get('Content-Type', '').startswith('application/json')
        ):
            return APIResponse.not_found(f'Route {request.method} {request.path} not found')

        return response

    def process_exception(self, request, exception):
        if not request.path.startswith(self.API_PREFIX):
            return None
        if isinstance(exception, Http404):
            return APIResponse.not_found(str(exception) or "Resource not found")
        return handle_service_error(exception)
