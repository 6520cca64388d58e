# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with problem+json responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify, current_app
from werkzeug.exceptions import HTTPException
import pydantic
from typing import Any, Dict, Optional
from opentelemetry import trace
import logging

from ..domain.errors import ReliefError, ValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with problem+json formatting."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.base_url = base_url.rstrip('/')
        self.register_error_handlers()

    def build_problem(self, error_type: str, title: str, status: int, detail: str,
                      extensions: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        problem = {
            "type": f"{self.base_url}/problems/{error_type}",
            "title": title,
            "status": status,
            "detail": detail,
            "instance": request.path
        }
        if extensions:
            problem.update(extensions)
        return problem

    def respond(self, problem: Dict[str, Any]):
        response = jsonify(problem)
        response.status_code = problem["status"]
        response.content_type = PROBLEM_CONTENT_TYPE
        return response

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(ReliefError)
        def handle_relief_error(error: ReliefError):
            return self.handle_domain_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error: Exception):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: ReliefError):
        """Render a domain error with its own status and problem type."""
        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Domain error: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            extensions = None
            if isinstance(error, ValidationError) and error.validation_errors:
                extensions = {"validation_errors": error.validation_errors}

            title = error.error_type.replace('-', ' ').capitalize()
            return self.respond(self.build_problem(
                error.error_type, title, error.status_code, error.message, extensions
            ))

    def handle_client_error(self, error: HTTPException):
        """Handle werkzeug HTTP errors (404, 405, ...)."""
        with tracer.start_as_current_span("error_handler.http_error") as span:
            span.set_attributes({
                "error.status": error.code or 500,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name
            log = logger.error if (error.code or 500) >= 500 else logger.warning
            log(
                f"HTTP error: {error.name}",
                extra={
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "user_agent": request.headers.get('User-Agent'),
                    "ip_address": request.remote_addr
                }
            )

            error_type = error.name.lower().replace(' ', '-')
            return self.respond(self.build_problem(error_type, error.name, error.code or 500, detail))

    def handle_unexpected_error(self, error: Exception):
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            problem+json response with status 500
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            # Don't expose internal error details in production
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            return self.respond(self.build_problem(
                "internal-server-error", "Internal Server Error", 500, detail
            ))


def validation_error_response(error: pydantic.ValidationError):
    """
    Render a request model validation failure as a 400 problem.

    Installed as the OpenAPI app's ``validation_error_callback`` so that body,
    query and path validation share the domain's validation-error shape.
    """
    base_url = current_app.config.get('BASE_URL', '').rstrip('/')
    validation_errors = [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]

    logger.warning(
        "Request validation failed",
        extra={
            "error_type": "validation-error",
            "path": request.path,
            "method": request.method,
            "error_count": len(validation_errors)
        }
    )

    response = jsonify({
        "type": f"{base_url}/problems/validation-error",
        "title": "Validation error",
        "status": 400,
        "detail": "Request validation failed",
        "instance": request.path,
        "validation_errors": validation_errors
    })
    response.status_code = 400
    response.content_type = PROBLEM_CONTENT_TYPE
    return response
