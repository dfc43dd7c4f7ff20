import re
import json
import copy

import requests

from snow_logging import logger
from attachment_download import AttachmentDownloadError, download_attachment


def sanitize_filename(filename):
    # Replace or remove illegal characters
    illegal_chars = r'[<>:"/\\|?*\0]'
    filename = re.sub(illegal_chars, '_', filename)
    # Remove leading/trailing spaces and dots (Windows restrictions)
    filename = filename.strip('. ').strip()
    return filename


def list_attachments(table_sys_id, auth):
    request_auth = copy.deepcopy(auth)
    url = request_auth['base_uri'].rstrip('/') + '/attachment'
    params = {'sysparm_query': f'table_sys_id={table_sys_id}'}

    response = requests.get(url, headers=request_auth.get('headers', {}), params=params,
                            timeout=request_auth.get('timeout'))
    response.raise_for_status()
    attachments = response.json().get('result', [])
    if attachments:
        logger.info(f"📎 Found {len(attachments)} attachment(s) for table_sys_id= {table_sys_id}")
    else:
        logger.info(f"📎 No attachments found for table_sys_id= {table_sys_id}")
    return attachments


def load_attachment_records(json_path):
    with open(json_path, 'r', encoding='utf-8') as f:
        response_data = json.load(f)
    if isinstance(response_data, list):
        return response_data
    return response_data.get('result', [])


def download_all(records, get_auth, destination=None, overwrite=False, append_id=False, dry_run=False):
    """Download each record in turn, logging and counting failures. get_auth returns a fresh auth context."""
    summary = {'downloaded': 0, 'planned': 0, 'skipped': 0, 'failed': 0}
    logger.info(f"Processing {len(records)} attachment(s)...")

    for record in records:
        sys_id = record.get('sys_id')
        if not sys_id:
            logger.error("❌ Skipping attachment record with missing sys_id")
            summary['skipped'] += 1
            continue

        file_name = sanitize_filename(record.get('file_name') or '')
        try:
            plan = download_attachment(sys_id, file_name, get_auth(), destination=destination,
                                       overwrite=overwrite, append_id=append_id, dry_run=dry_run)
        except AttachmentDownloadError as e:
            logger.error(f"   ✗ Skipped attachment sys_id= {sys_id}: {e}")
            summary['failed'] += 1
            continue
        except requests.exceptions.RequestException as e:
            logger.error(f"   ✗ Error downloading '{file_name}', sys_id= {sys_id} : {e}")
            summary['failed'] += 1
            continue
        except OSError as e:
            logger.error(f"   ✗ Could not save '{file_name}', sys_id= {sys_id} : {e}")
            summary['failed'] += 1
            continue

        if plan.dry_run:
            summary['planned'] += 1
        else:
            summary['downloaded'] += 1

    return summary
