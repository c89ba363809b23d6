#!/usr/bin/env python3
"""
ChromaCut API Server
One tracing session per uploaded image. The front end sends cursor/click
coordinates in image pixels and gets polylines and composited PNGs back.
"""

import os
import logging
from typing import Any, Dict, Tuple
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest, NotFound
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from .models.session_state import SessionStateError
from .models.tracing_session import TracingSession
from .services.boundary_session import BoundarySession
from .services.edge_cost_service import DEFAULT_SENSITIVITY
from .services.image_service import ImageService
from .services.mask_service import DEFAULT_BG_COLOR, MaskService
from .services.path_finding_service import PathFindingService
from .services.tracing_service import TracingService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,bmp,tif,tiff,webp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()
tracing_service = TracingService()
mask_service = MaskService()
path_finder = PathFindingService()

logger = logging.getLogger(__name__)


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _get_session(payload: Dict[str, Any]) -> TracingSession:
    session_id = payload.get('session_id')
    if not session_id:
        raise BadRequest('session_id is required')
    try:
        return tracing_service.get_session(session_id)
    except KeyError:
        raise NotFound(f'Invalid session: {session_id}')


def _point(payload: Dict[str, Any]) -> Tuple[float, float]:
    if 'x' not in payload or 'y' not in payload:
        raise BadRequest('x and y are required')
    try:
        return float(payload['x']), float(payload['y'])
    except (TypeError, ValueError):
        raise BadRequest('x and y must be numbers')


def _number(payload: Dict[str, Any], key: str, default: Any = None) -> float:
    value = payload.get(key, default)
    if value is None:
        raise BadRequest(f'{key} is required')
    try:
        return float(value)
    except (TypeError, ValueError):
        raise BadRequest(f'{key} must be a number')


def _scale(payload: Dict[str, Any]) -> float:
    return _number(payload, 'scale', 1.0)


def _polyline(points) -> list:
    return [[p.x, p.y] for p in points]


def _snapshot(session: TracingSession) -> Dict[str, Any]:
    """JSON view of the boundary session for the front end."""
    boundary = session.boundary
    return {
        'success': True,
        'session_id': session.session_id,
        'state': boundary.state.value,
        'closed': boundary.is_closed,
        'sensitivity': session.sensitivity,
        'anchors': [{'id': a.id, 'x': a.point.x, 'y': a.point.y} for a in boundary.anchors],
        'committed_path': _polyline(boundary.committed_path),
    }


@app.route('/api/load-image', methods=['POST'])
def load_image():
    """Decode an uploaded image and open a tracing session for it."""
    if 'image' not in request.files:
        return jsonify({'success': False, 'message': 'No image provided'}), 400

    file = request.files['image']
    if file.filename == '' or not allowed_file(file.filename):
        return jsonify({'success': False, 'message': 'Unsupported or missing file'}), 400

    try:
        sensitivity = float(request.form.get('sensitivity', DEFAULT_SENSITIVITY))
    except ValueError:
        raise BadRequest('sensitivity must be a number')

    filename = secure_filename(file.filename)
    image = image_service.decode(file.read(), filename)
    session = tracing_service.open_session(image, sensitivity)
    logger.info(f"Image {filename} loaded: {image.pixels.shape} → session {session.session_id}")

    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'width': image.width,
        'height': image.height,
        'sensitivity': session.sensitivity,
        'state': session.boundary.state.value,
    })


@app.route('/api/sensitivity', methods=['POST'])
def set_sensitivity():
    """Recompute the cost field; in-flight previews become stale."""
    payload = _payload()
    session = _get_session(payload)
    tracing_service.set_sensitivity(session, _number(payload, 'sensitivity'))
    return jsonify(_snapshot(session))


@app.route('/api/anchor', methods=['POST'])
def add_anchor():
    payload = _payload()
    session = _get_session(payload)
    anchor = session.boundary.add_anchor(_point(payload))
    response = _snapshot(session)
    response['anchor'] = {'id': anchor.id, 'x': anchor.point.x, 'y': anchor.point.y}
    return jsonify(response)


@app.route('/api/preview', methods=['POST'])
def preview():
    """Live preview from the last anchor to the cursor (callers throttle)."""
    payload = _payload()
    session = _get_session(payload)
    cursor = _point(payload)
    radius = BoundarySession.snap_radius_for_scale(_scale(payload))

    path = session.boundary.preview_to(cursor)
    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'preview_path': _polyline(path),
        'near_start': session.boundary.is_near_start(cursor, radius),
    })


@app.route('/api/close', methods=['POST'])
def close_path():
    payload = _payload()
    session = _get_session(payload)
    cursor = _point(payload)
    if 'radius' in payload:
        radius = _number(payload, 'radius')
    else:
        radius = BoundarySession.snap_radius_for_scale(_scale(payload))

    polygon = session.boundary.try_close(cursor, radius)
    response = _snapshot(session)
    if polygon is None:
        response['message'] = 'Not close enough to the first anchor (or fewer than 3 anchors)'
    return jsonify(response)


@app.route('/api/undo', methods=['POST'])
def undo():
    session = _get_session(_payload())
    session.boundary.undo()
    return jsonify(_snapshot(session))


@app.route('/api/reset', methods=['POST'])
def reset():
    session = _get_session(_payload())
    session.boundary.reset()
    return jsonify(_snapshot(session))


@app.route('/api/apply', methods=['POST'])
def apply_mask():
    """Rasterize the closed boundary and composite the result as a PNG."""
    payload = _payload()
    session = _get_session(payload)
    boundary = session.boundary
    if not boundary.is_closed:
        raise SessionStateError('apply a mask', boundary.state)

    mode = payload.get('mode', 'background')
    color = payload.get('color', DEFAULT_BG_COLOR)
    polygon = boundary.committed_path

    result = mask_service.apply(session.image, polygon, mode=mode, color=color)
    logger.info(f"Session {session.session_id}: applied {mode} ({len(polygon)} boundary points)")

    outline = polygon
    if payload.get('simplify'):
        outline = path_finder.simplify_path(polygon, _number(payload, 'tolerance', 1.0))

    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'mode': mode,
        'polygon': _polyline(outline),
        'image': image_service.to_png_base64(result),
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'ChromaCut API is running',
        'active_sessions': tracing_service.active_sessions()
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Drop a session and free its image."""
    session_id = _payload().get('session_id')
    if session_id and tracing_service.close_session(session_id):
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'})


@app.errorhandler(SessionStateError)
def wrong_state(e):
    """Operation not allowed in the session's current state."""
    logger.warning(f"Rejected: {e}")
    return jsonify({'success': False, 'message': str(e), 'state': e.state.value}), 409


@app.errorhandler(ValueError)
def invalid_value(e):
    logger.warning(f"Invalid request value: {e}")
    return jsonify({'success': False, 'message': str(e)}), 400


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'success': False, 'message': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(400)
def bad_request(e):
    """Handle bad request error."""
    return jsonify({'success': False, 'message': getattr(e, 'description', 'Bad request')}), 400


@app.errorhandler(404)
def not_found(e):
    return jsonify({'success': False, 'message': getattr(e, 'description', 'Not found')}), 404


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "5000"))
    print("🚀 Starting ChromaCut API Server...")
    print(f"🔧 Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print("🌐 CORS enabled for frontend communication")
    print("="*60)
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    main()
