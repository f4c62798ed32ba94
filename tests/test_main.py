"""
Tests for Flask application core functionality.
"""
import pytest
import io
import json
import logging

from imagefit.errors import (
    CompressionInfeasible,
    EncodeFailure,
    InvalidInput,
    RasterizerFailure,
)
from imagefit.main import create_app, Config, JSONFormatter


@pytest.fixture
def app():
    """Create and configure a test Flask application."""
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


class TestFlaskAppInitialization:
    """Tests for Flask app initialization and configuration."""

    def test_app_creation(self, app):
        """Test that Flask app is created successfully."""
        assert app is not None
        assert app.config['TESTING'] is True

    def test_config_defaults(self, app):
        """Test that configuration defaults match the reference deployment."""
        assert Config.MIN_WIDTH == 2880
        assert Config.MIN_HEIGHT == 2304
        assert Config.SIZE_BUDGET_BYTES == 5 * 1024 * 1024
        assert Config.ASPECT_RATIO_TOLERANCE == 0.01
        assert app.config['MAX_CONTENT_LENGTH'] == Config.MAX_UPLOAD_SIZE

    def test_json_logging_setup(self, app):
        """Test that JSON logging is configured."""
        assert len(app.logger.handlers) > 0
        assert app.logger.level > 0
        assert isinstance(app.logger.handlers[0].formatter, JSONFormatter)

    def test_json_formatter_includes_extras(self):
        """Test that whitelisted extra fields end up in the JSON record."""
        record = logging.LogRecord('imagefit', logging.INFO, __file__, 10, 'Request completed', None, None)
        record.quality = 0.5
        record.byte_size = 1234
        record.request_id = 'not-whitelisted'

        data = json.loads(JSONFormatter().format(record))

        assert data['message'] == 'Request completed'
        assert data['level'] == 'INFO'
        assert data['quality'] == 0.5
        assert data['byte_size'] == 1234
        assert 'request_id' not in data

    def test_json_formatter_omits_absent_extras(self):
        """Test that a record logged without extras carries no upload name."""
        record = logging.LogRecord('imagefit', logging.INFO, __file__, 10, 'Flask application initialized', None, None)

        data = json.loads(JSONFormatter().format(record))

        assert 'upload_name' not in data
        assert 'filename' not in data
        assert 'endpoint' not in data

    def test_upload_name_extra_is_logged(self, app):
        """Test that the upload name extra passes through the app logger."""
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        app.logger.addHandler(handler)

        try:
            app.logger.info('Request completed', extra={'upload_name': 'photo.png', 'status': 'success'})
        finally:
            app.logger.removeHandler(handler)

        data = json.loads(JSONFormatter().format(records[-1]))
        assert data['upload_name'] == 'photo.png'
        assert data['status'] == 'success'


class TestErrorHandlers:
    """Tests for error handler responses."""

    def test_error_response_format(self, client):
        """Test that error responses have correct JSON structure."""
        from werkzeug.exceptions import BadRequest

        @client.application.route('/test_400')
        def test_400():
            raise BadRequest('Test error')

        response = client.get('/test_400')

        assert response.status_code == 400
        data = json.loads(response.get_data(as_text=True))
        assert data['status'] == 'error'
        assert 'error' in data
        assert data['error_code'] == 'BAD_REQUEST'
        assert data['message'] == 'Test error'

    def test_401_error_format(self, client):
        """Test 401 Unauthorized error returns correct format."""
        from werkzeug.exceptions import Unauthorized

        @client.application.route('/test_401')
        def test_401():
            raise Unauthorized('Invalid credentials')

        response = client.get('/test_401')

        assert response.status_code == 401
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'AUTH_FAILED'

    def test_404_error_format(self, client):
        """Test unknown routes return the JSON 404 format."""
        response = client.get('/nonexistent')

        assert response.status_code == 404
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'NOT_FOUND'

    def test_413_error_format(self, client):
        """Test 413 Request Entity Too Large error returns correct format."""
        from werkzeug.exceptions import RequestEntityTooLarge

        @client.application.route('/test_413')
        def test_413():
            raise RequestEntityTooLarge('File too large')

        response = client.get('/test_413')

        assert response.status_code == 413
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'IMAGE_TOO_LARGE'

    def test_upload_over_limit(self, app, client):
        """Test that uploads above MAX_CONTENT_LENGTH are rejected with 413."""
        app.config['MAX_CONTENT_LENGTH'] = 1024

        response = client.post('/resize', data={'image': (io.BytesIO(b'\x00' * 4096), 'big.png', 'image/png')},
                               content_type='multipart/form-data')

        assert response.status_code == 413

    def test_500_error_format(self, client):
        """Test 500 Internal Server Error returns correct format."""
        from werkzeug.exceptions import InternalServerError

        @client.application.route('/test_500')
        def test_500():
            raise InternalServerError('Something went wrong')

        response = client.get('/test_500')

        assert response.status_code == 500
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'INTERNAL_ERROR'

    def test_503_error_format(self, client):
        """Test 503 Service Unavailable error returns correct format."""
        from werkzeug.exceptions import ServiceUnavailable

        @client.application.route('/test_503')
        def test_503():
            raise ServiceUnavailable('Service down')

        response = client.get('/test_503')

        assert response.status_code == 503
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'SERVICE_UNAVAILABLE'

    @pytest.mark.parametrize('error, status_code, error_code', [
        (InvalidInput('bad dimensions'), 400, 'INVALID_INPUT'),
        (RasterizerFailure('unsupported pixel format'), 422, 'RASTERIZER_FAILURE'),
        (EncodeFailure('encoder crashed'), 500, 'ENCODE_FAILURE'),
        (CompressionInfeasible(5 * 1024 * 1024, 6_000_000), 422, 'COMPRESSION_INFEASIBLE'),
    ])
    def test_pipeline_errors(self, client, error, status_code, error_code):
        """Test that each pipeline error maps to its status and error code."""
        @client.application.route('/test_pipeline_error')
        def test_pipeline_error():
            raise error

        response = client.get('/test_pipeline_error')

        assert response.status_code == status_code
        data = json.loads(response.get_data(as_text=True))
        assert data['status'] == 'error'
        assert data['error_code'] == error_code
        assert data['message'] == error.message

    def test_compression_infeasible_message(self):
        """Test that the infeasible error names the budget in MB."""
        error = CompressionInfeasible(5 * 1024 * 1024)

        assert error.message == 'Could not compress the image under 5MB'
        assert error.best_size is None


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_endpoint(self, client):
        """Test /health endpoint returns 200."""
        response = client.get('/health')

        assert response.status_code == 200
        data = json.loads(response.get_data(as_text=True))
        assert data['status'] == 'healthy'
        assert 'timestamp' in data