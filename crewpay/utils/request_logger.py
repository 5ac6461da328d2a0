"""
Request logging with timing
"""
import time
import logging
from flask import request, g

logger = logging.getLogger(__name__)


class RequestLogger:
    """Per-request timing and outcome logging"""

    @staticmethod
    def before_request():
        g.start_time = time.time()
        g.request_id = request.headers.get('X-Request-Id') or f"{int(time.time() * 1000000)}"

    @staticmethod
    def after_request(response):
        if not hasattr(g, 'start_time'):
            return response

        duration_ms = (time.time() - g.start_time) * 1000
        message = (f"[{g.request_id}] {request.method} {request.path} -> {response.status_code} "
                   f"in {duration_ms:.1f}ms")
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)

        response.headers['X-Request-Id'] = g.request_id
        return response

    @classmethod
    def init_app(cls, app):
        app.before_request(cls.before_request)
        app.after_request(cls.after_request)
