# Overview: Flask API routes for the invoice file bucket.

from flask import Blueprint, request, jsonify, current_app, send_file

from ..services import storage_service
from ..services.storage_service import StorageError, StoredFileNotFoundError
from ..decorators import require_auth, require_admin


files_bp = Blueprint("files", __name__, url_prefix="/api/files")


@files_bp.get("")
@require_auth
def list_files_route(ctx):
    try:
        bucket = storage_service.get_bucket()
        files = bucket.list_files()
    except StorageError:
        current_app.logger.exception("Failed to list files")
        return jsonify({"error": "Failed to list files"}), 500

    items = []
    for stored in reversed(files):
        data = stored.to_dict()
        data["url"] = bucket.public_url(stored.name)
        items.append(data)
    return jsonify({"items": items, "count": len(items)}), 200


@files_bp.post("")
@require_auth
def upload_file_route(ctx):
    """Multipart upload; the object is stored under a generated name."""
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    upload = request.files["file"]
    name = storage_service.generate_object_name(upload.filename)
    try:
        bucket = storage_service.get_bucket()
        stored = bucket.upload(name, upload.stream)
    except StorageError:
        current_app.logger.exception("Failed to store upload")
        return jsonify({"error": "Failed to store file"}), 500

    current_app.logger.info("File %s uploaded by %s (%d bytes)", stored.name, ctx.username, stored.size)
    data = stored.to_dict()
    data["url"] = bucket.public_url(stored.name)
    return jsonify({"file": data}), 201


@files_bp.get("/<string:name>")
@require_auth
def download_file_route(name: str, ctx):
    try:
        path = storage_service.get_bucket().open(name)
    except StoredFileNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    return send_file(path, as_attachment=request.args.get("download") == "1", download_name=name)


@files_bp.delete("/<string:name>")
@require_auth
@require_admin
def delete_file_route(name: str, ctx):
    try:
        storage_service.get_bucket().remove(name)
    except StoredFileNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    current_app.logger.info("File %s deleted by %s", name, ctx.username)
    return jsonify({"ok": True}), 200
