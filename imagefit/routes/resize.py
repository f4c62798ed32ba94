"""
/resize endpoint for upscaling a 16:9 image under the size budget.
"""
import io
import os
from datetime import datetime
from flask import jsonify, request, send_file
from werkzeug.exceptions import BadRequest, HTTPException, Unauthorized

from imagefit.errors import ImageFitError
from imagefit.models import TargetSpec
from imagefit.utils.image_processing import decode_image, resize_to_fit
from imagefit.utils.validation import validate_image, validate_aspect_ratio, sanitize_string


def _download_name(filename: str) -> str:
    stem = os.path.splitext(os.path.basename(sanitize_string(filename or '')))[0]
    return f"{stem or 'image'}_resized.jpg"


def register_resize_route(app):
    """Register the /resize endpoint with the Flask app."""

    @app.route('/resize', methods=['POST'])
    def resize():
        """
        Upscale an uploaded 16:9 image past the target resolution and
        re-encode it as JPEG under the configured byte budget.

        Accepts multipart/form-data with:
        - image: File (any image type Pillow can decode)

        Returns the JPEG as an attachment with X-Image-* headers describing
        the output dimensions and chosen quality.
        """
        start_time = datetime.utcnow()
        filename = None

        try:
            # 1. Authenticate request when an API key is configured
            if app.config.get('API_KEY'):
                auth_header = request.headers.get('Authorization', '')
                if not auth_header.startswith('Bearer '):
                    raise Unauthorized('Missing or invalid Authorization header')

                api_key = auth_header.replace('Bearer ', '').strip()
                if api_key != app.config['API_KEY']:
                    raise Unauthorized('Invalid API key')

            # 2. Extract the upload
            if 'image' not in request.files:
                raise BadRequest('Missing image file')

            image_file = request.files['image']
            filename = sanitize_string(image_file.filename)

            # 3. Validate image
            is_valid, error_msg = validate_image(image_file)
            if not is_valid:
                raise BadRequest(error_msg)

            # 4. Decode and check the aspect ratio before any encode work
            image_bytes = image_file.read()
            img, source = decode_image(image_bytes)
            validate_aspect_ratio(
                source.width,
                source.height,
                tolerance=app.config['ASPECT_RATIO_TOLERANCE']
            )

            # 5. Resize and search for the best quality under budget
            probes = []
            result = resize_to_fit(
                img,
                source.width,
                source.height,
                target=TargetSpec(app.config['MIN_WIDTH'], app.config['MIN_HEIGHT']),
                budget=app.config['SIZE_BUDGET_BYTES'],
                tolerance=app.config['ASPECT_RATIO_TOLERANCE'],
                observer=probes.append
            )

            # 6. Log completion
            duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
            app.logger.info('Request completed', extra={
                'endpoint': '/resize',
                'upload_name': filename,
                'width': result.width,
                'height': result.height,
                'quality': result.quality_level,
                'byte_size': result.byte_size,
                'probes': len(probes),
                'duration_ms': duration_ms,
                'status': 'success'
            })

            # 7. Build response
            response = send_file(
                io.BytesIO(result.payload),
                mimetype='image/jpeg',
                as_attachment=True,
                download_name=_download_name(filename)
            )
            response.headers['X-Image-Width'] = str(result.width)
            response.headers['X-Image-Height'] = str(result.height)
            response.headers['X-Image-Quality'] = f'{result.quality_level:.4f}'
            response.headers['X-Original-Width'] = str(source.width)
            response.headers['X-Original-Height'] = str(source.height)
            return response

        except (HTTPException, ImageFitError) as e:
            duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
            app.logger.warning(f'Request rejected: {str(e)}', extra={
                'endpoint': '/resize',
                'upload_name': filename,
                'duration_ms': duration_ms,
                'status': 'error'
            })
            # Re-raise for the registered error handlers
            raise

        except Exception as e:
            # Log and return 500 for unexpected errors
            duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
            app.logger.error(f'Request failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/resize',
                'upload_name': filename,
                'duration_ms': duration_ms,
                'status': 'error'
            })

            return jsonify({
                'status': 'error',
                'error': 'Internal server error',
                'error_code': 'INTERNAL_ERROR',
                'message': str(e)
            }), 500
