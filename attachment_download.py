import os
import copy
import tempfile
from dataclasses import dataclass

import requests

from snow_logging import logger

ATTACHMENT_FILE_PATH = '/attachment/{sys_id}/file'
CHUNK_SIZE = 8192


class AttachmentDownloadError(Exception):
    def __init__(self, message, **context):
        self.message = message
        self.context = context
        for key, value in context.items():
            setattr(self, key, value)
        super().__init__(message)


class InvalidDestinationError(AttachmentDownloadError):
    def __init__(self, path):
        super().__init__(f"Destination directory '{path}' does not exist or is not a writable directory", path=path)


class AttachmentExistsError(AttachmentDownloadError):
    def __init__(self, path):
        super().__init__(
            f"File '{path}' already exists. Pick another file name, use --append-id to add the "
            f"attachment sys_id to the name, or pass --overwrite to replace it",
            path=path,
        )


class InvalidAttachmentError(AttachmentDownloadError):
    pass


@dataclass
class DownloadPlan:
    sys_id: str
    uri: str
    file_path: str
    overwrite: bool = False
    dry_run: bool = False
    bytes_written: int = 0

    @property
    def action(self):
        return 'overwrite' if self.overwrite else 'create'

    def describe(self):
        verb = 'Would' if self.dry_run else 'Will'
        return f"{verb} download attachment {self.sys_id} from {self.uri} to '{self.file_path}' ({self.action})"


def effective_file_name(file_name, sys_id, append_id=False):
    # {basename}_{sys_id}{extension}, split on the last dot
    if not append_id:
        return file_name
    base, dot, extension = file_name.rpartition('.')
    if not dot:
        return f"{file_name}_{sys_id}"
    return f"{base}_{sys_id}.{extension}"


def attachment_uri(base_uri, sys_id):
    return base_uri.rstrip('/') + ATTACHMENT_FILE_PATH.format(sys_id=sys_id)


def _check_destination(destination):
    if not os.path.isdir(destination) or not os.access(destination, os.W_OK | os.X_OK):
        raise InvalidDestinationError(destination)


def _check_sys_id(sys_id):
    if not sys_id:
        raise InvalidAttachmentError("An attachment sys_id is required", sys_id=sys_id)
    if sys_id in ('.', '..') or '/' in sys_id or os.sep in sys_id:
        raise InvalidAttachmentError(f"Attachment sys_id '{sys_id}' must not contain path separators", sys_id=sys_id)


def _check_file_name(file_name):
    if not file_name:
        raise InvalidAttachmentError("An attachment file name is required", file_name=file_name)
    if file_name in ('.', '..') or os.path.basename(file_name) != file_name or '/' in file_name:
        raise InvalidAttachmentError(f"Attachment file name '{file_name}' must be a plain file name", file_name=file_name)


def _stream_to_file(uri, request_args, file_path):
    response = requests.get(uri, stream=True, **request_args)
    try:
        response.raise_for_status()
        fd, temp_path = tempfile.mkstemp(prefix='.', suffix='.part', dir=os.path.dirname(file_path))
        bytes_written = 0
        try:
            with os.fdopen(fd, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        bytes_written += len(chunk)
            os.replace(temp_path, file_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        return bytes_written
    finally:
        response.close()


def download_attachment(sys_id, file_name, auth, destination=None, overwrite=False, append_id=False, dry_run=False):
    """Download one attachment to destination/file_name. Errors from requests propagate unchanged."""
    if destination is None:
        destination = os.getcwd()
    _check_destination(destination)

    _check_sys_id(sys_id)

    # Per-call copy, the caller's context stays as it was
    request_auth = copy.deepcopy(auth)
    uri = attachment_uri(request_auth['base_uri'], sys_id)

    _check_file_name(file_name)
    name = effective_file_name(file_name, sys_id, append_id)
    file_path = os.path.join(destination, name)

    exists = os.path.exists(file_path)
    if exists and not overwrite:
        raise AttachmentExistsError(file_path)

    plan = DownloadPlan(sys_id=sys_id, uri=uri, file_path=file_path, overwrite=exists, dry_run=dry_run)
    if dry_run:
        logger.info(f"🔎 {plan.describe()}")
        return plan

    request_args = {'headers': request_auth.get('headers', {})}
    if request_auth.get('timeout') is not None:
        request_args['timeout'] = request_auth['timeout']

    plan.bytes_written = _stream_to_file(uri, request_args, file_path)
    logger.info(f"   ✓ Downloaded attachment '{name}' (sys_id= {sys_id}, {plan.bytes_written} bytes) to {file_path}")
    return plan
