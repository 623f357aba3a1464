"""
Flask application for HTTP API.

Provides:
- GET /health: Service health check
- POST /api/recognize: Identify the face in a capture
- POST /api/attendance/check-in: Identify and record attendance
- POST /api/faces/<user_id>: Enroll a face sample for a user
- GET /api/attendance/summary: Today's present/late/absent counts
- GET /api/attendance/today: Today's attendance records
- GET /api/attendance/recent: Most recent attendance records
- GET /api/attendance/records: History filtered by date range, user and status
"""

import time
from datetime import date
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .attendance import AttendanceStatus
from .config import Config
from .exceptions import (
    BackendRequestError,
    DimensionMismatch,
    ExtractorNotReady,
    FaceNotFound,
    InvalidThreshold,
    StoreUnavailable,
)
from .logging_config import get_logger
from .recognition.matching import Matched, MatchResult
from .service import AttendanceMatcherService
from .utils.images import decode_image
from .utils.timing import format_uptime

logger = get_logger(__name__)


class BadPayload(ValueError):
    pass


def _match_payload(result: MatchResult) -> Dict[str, Any]:
    if isinstance(result, Matched):
        return {
            'matched': True,
            'userId': result.identity.identity_id,
            'name': result.identity.name,
            'distance': result.distance,
        }
    return {
        'matched': False,
        'reason': result.reason.value,
        'distance': result.distance,
    }


def _date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise BadPayload(f'"{name}" must be a YYYY-MM-DD date') from None


def _image_from_request():
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise BadPayload('Request body must be a JSON object')

    raw = body.get('image')
    if raw is not None and not isinstance(raw, str):
        raise BadPayload('"image" must be a data URL or base64 string')
    if not raw:
        upload = request.files.get('image')
        raw = upload.read() if upload else None
    if not raw:
        raise BadPayload('Missing "image"')
    try:
        return decode_image(raw), body
    except ValueError as e:
        raise BadPayload(str(e)) from e


def create_app(config: Config, service: AttendanceMatcherService) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Service configuration
        service: Recognition service backing the endpoints

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    CORS(app)
    started_at = time.time()

    @app.errorhandler(BadPayload)
    def bad_payload(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(FaceNotFound)
    def face_not_found(e):
        return jsonify({'error': 'no_face', 'message': str(e)}), 422

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(e):
        logger.warning(f'Backend unavailable: {e}')
        return jsonify({'error': 'unavailable', 'message': 'Backend unavailable, try again'}), 503

    @app.errorhandler(BackendRequestError)
    def backend_rejected(e):
        logger.error(f'❌ {e}')
        return jsonify({'error': 'backend_rejected', 'message': str(e)}), 502

    @app.errorhandler(ExtractorNotReady)
    def extractor_not_ready(e):
        return jsonify({'error': 'not_ready', 'message': str(e)}), 503

    @app.errorhandler(DimensionMismatch)
    @app.errorhandler(InvalidThreshold)
    def misconfigured(e):
        logger.error(f'❌ Configuration fault: {e}')
        return jsonify({'error': 'misconfigured', 'message': str(e)}), 500

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'ok',
            'service': config.service_name,
            'kioskId': config.kiosk_id,
            'extractorReady': service.extractor.ready,
            'uptime': format_uptime(time.time() - started_at),
        })

    @app.route('/api/recognize', methods=['POST'])
    def recognize():
        image, _ = _image_from_request()
        return jsonify(_match_payload(service.identify(image)))

    @app.route('/api/attendance/check-in', methods=['POST'])
    def check_in():
        image, body = _image_from_request()
        result = service.check_in(
            image,
            location=body.get('location'),
            notes=body.get('notes'),
        )
        payload = _match_payload(result.match)
        if result.attendance is not None:
            payload['attendance'] = result.attendance.record.to_dict()
            payload['created'] = result.attendance.created
        return jsonify(payload)

    @app.route('/api/faces/<user_id>', methods=['POST'])
    def register(user_id: str):
        image, body = _image_from_request()
        result = service.register_face(
            user_id,
            image,
            name=body.get('name'),
            employee_id=body.get('employeeId'),
            department=body.get('department'),
        )
        return jsonify({
            'userId': result.identity.identity_id,
            'name': result.identity.name,
            'samples': result.samples,
        }), 201

    @app.route('/api/attendance/summary')
    def attendance_summary():
        return jsonify(service.attendance_summary().to_dict())

    @app.route('/api/attendance/today')
    def attendance_today():
        return jsonify([r.to_dict() for r in service.today_attendance()])

    @app.route('/api/attendance/recent')
    def attendance_recent():
        limit = request.args.get('limit', default=20, type=int)
        return jsonify([r.to_dict() for r in service.recent_attendance(limit)])

    @app.route('/api/attendance/records')
    def attendance_records():
        raw_status = request.args.get('status')
        try:
            status = AttendanceStatus(raw_status) if raw_status else None
        except ValueError:
            raise BadPayload('"status" must be "present" or "late"') from None

        try:
            records = service.attendance_records(
                date_from=_date_arg('from'),
                date_to=_date_arg('to'),
                identity_id=request.args.get('userId') or None,
                status=status,
            )
        except ValueError as e:
            raise BadPayload(str(e)) from e
        return jsonify([r.to_dict() for r in records])

    return app
