import uuid

from classwall.firestore_models import Attachment


def upload_file(bucket, file_data, destination_path, content_type=None):
    """Upload file bytes to Firebase Storage.

    Args:
        bucket: google.cloud.storage Bucket of the connected backend
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'classWall/<uid>/<name>')
        content_type: MIME type

    Returns:
        The storage path (same as destination_path)
    """
    blob = bucket.blob(destination_path)
    if content_type:
        blob.content_type = content_type
    if isinstance(file_data, bytes):
        blob.upload_from_string(file_data, content_type=content_type)
    else:
        blob.upload_from_file(file_data, content_type=content_type)
    return destination_path


def upload_attachment(bucket, owner_id, file_storage):
    """Upload one picked file and describe it.

    Returns:
        Attachment carrying name, size, MIME type and storage path
    """
    data = file_storage.read()
    name = file_storage.filename or f'file_{uuid.uuid4().hex[:8]}'
    content_type = file_storage.mimetype or 'application/octet-stream'
    path = f'classWall/{owner_id}/{uuid.uuid4().hex[:8]}_{name}'
    upload_file(bucket, data, path, content_type)
    return Attachment(name=name, size=len(data), type=content_type, uri=path)


def upload_attachments(bucket, owner_id, file_storages):
    """Upload every non-empty file from a multi-file field."""
    return [upload_attachment(bucket, owner_id, f) for f in file_storages or [] if f and f.filename]
