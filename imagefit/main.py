"""
Main Flask application with configuration, logging, and error handlers.
"""
import os
import json
import logging
from datetime import datetime
from flask import Flask, jsonify
from dotenv import load_dotenv

from imagefit.errors import (
    ImageFitError,
    InvalidInput,
    RasterizerFailure,
    CompressionInfeasible,
)
from imagefit.models import (
    DEFAULT_ASPECT_TOLERANCE,
    DEFAULT_MIN_HEIGHT,
    DEFAULT_MIN_WIDTH,
    DEFAULT_SIZE_BUDGET,
)

# Load environment variables
load_dotenv()


class Config:
    """Configuration class to load environment variables."""

    API_KEY = os.getenv('API_KEY')
    FLASK_ENV = os.getenv('FLASK_ENV', 'production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    MIN_WIDTH = int(os.getenv('MIN_WIDTH', DEFAULT_MIN_WIDTH))
    MIN_HEIGHT = int(os.getenv('MIN_HEIGHT', DEFAULT_MIN_HEIGHT))
    SIZE_BUDGET_BYTES = int(os.getenv('SIZE_BUDGET_BYTES', DEFAULT_SIZE_BUDGET))  # 5MB default
    ASPECT_RATIO_TOLERANCE = float(os.getenv('ASPECT_RATIO_TOLERANCE', DEFAULT_ASPECT_TOLERANCE))
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 50 * 1024 * 1024))  # 50MB default
    MAX_CONTENT_LENGTH = MAX_UPLOAD_SIZE


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    EXTRA_FIELDS = (
        'endpoint', 'upload_name', 'width', 'height', 'quality',
        'byte_size', 'probes', 'duration_ms', 'status'
    )

    def format(self, record):
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add extra fields if present
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(app):
    """Set up JSON logging for the application."""
    # Remove default handlers
    app.logger.handlers.clear()

    # Create console handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    # Set log level
    log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)
    handler.setLevel(log_level)
    app.logger.setLevel(log_level)

    # Add handler to app logger
    app.logger.addHandler(handler)

    # Prevent propagation to avoid duplicate logs
    app.logger.propagate = False

    # Pipeline modules log under the package logger
    package_logger = logging.getLogger('imagefit')
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    package_logger.propagate = False


def create_app():
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(Config)

    # Set up JSON logging
    setup_logging(app)

    # Register error handlers
    register_error_handlers(app)

    # Register routes
    register_routes(app)

    app.logger.info(f'Flask application initialized (env={Config.FLASK_ENV})')

    return app


def _error_response(error, error_code, message, status_code):
    return jsonify({
        'status': 'error',
        'error': error,
        'error_code': error_code,
        'message': message
    }), status_code


def register_error_handlers(app):
    """Register error handlers for common HTTP status codes and pipeline errors."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        app.logger.warning(f'Bad request: {str(error)}')
        return _error_response(
            'Bad request', 'BAD_REQUEST',
            str(error.description) if hasattr(error, 'description') else 'Invalid request data',
            400
        )

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        app.logger.warning(f'Unauthorized access attempt: {str(error)}')
        return _error_response('Unauthorized', 'AUTH_FAILED', 'Invalid or missing API key', 401)

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        app.logger.warning(f'Resource not found: {str(error)}')
        return _error_response(
            'Not found', 'NOT_FOUND',
            str(error.description) if hasattr(error, 'description') else 'Resource not found',
            404
        )

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle 413 Request Entity Too Large errors."""
        app.logger.warning(f'Request too large: {str(error)}')
        return _error_response(
            'Request entity too large', 'IMAGE_TOO_LARGE',
            f'Image exceeds maximum upload size of {app.config["MAX_UPLOAD_SIZE"]} bytes',
            413
        )

    @app.errorhandler(500)
    def internal_server_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f'Internal server error: {str(error)}', exc_info=True)
        return _error_response('Internal server error', 'INTERNAL_ERROR', 'An unexpected error occurred', 500)

    @app.errorhandler(503)
    def service_unavailable(error):
        """Handle 503 Service Unavailable errors."""
        app.logger.error(f'Service unavailable: {str(error)}')
        return _error_response('Service unavailable', 'SERVICE_UNAVAILABLE', 'Service is currently unavailable', 503)

    @app.errorhandler(ImageFitError)
    def image_fit_error(error):
        """Map pipeline failures to JSON error responses."""
        if isinstance(error, InvalidInput):
            status_code, label = 400, 'Invalid input'
        elif isinstance(error, (RasterizerFailure, CompressionInfeasible)):
            status_code, label = 422, 'Unprocessable image'
        else:
            status_code, label = 500, 'Image processing failed'

        if status_code >= 500:
            app.logger.error(f'Image processing failed: {error.message}', exc_info=True)
        else:
            app.logger.warning(f'Image rejected: {error.message}')

        body = {
            'status': 'error',
            'error': label,
            'error_code': error.error_code,
            'message': error.message
        }
        if isinstance(error, CompressionInfeasible):
            body['budget'] = error.budget
            body['best_size'] = error.best_size
        return jsonify(body), status_code


def register_routes(app):
    """Register application routes."""

    # Import and register resize route
    from imagefit.routes.resize import register_resize_route
    register_resize_route(app)

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat() + 'Z'
        }), 200


# Create the Flask app instance
app = create_app()


if __name__ == '__main__':
    # For local development only
    port = int(os.environ.get('PORT', 8080))
    app.run(host='0.0.0.0', port=port, debug=(Config.FLASK_ENV != 'production'))
