"""
Photo Upload Blueprint.

Routes:
  POST   /photos   – multipart upload (field "file"), returns {path}

Storage is delegated to the configured PhotoStore collaborator.
"""

from flask import Blueprint, current_app, jsonify, request

from fieldops.blueprints import current_actor
from fieldops.utils.errors import E, api_error, register_workflow_error_handlers

photo_bp = Blueprint("photo_bp", __name__, url_prefix="/api/v1/photos")
register_workflow_error_handlers(photo_bp)


@photo_bp.route("", methods=["POST"])
def upload_photo():
    current_actor()
    upload = request.files.get("file")
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "file is required")

    store = current_app.extensions["photo_store"]
    path = store.upload_photo(upload.read(), upload.filename or "")
    return jsonify({"path": path}), 201
