import os
import sys
import argparse

import requests
from dotenv import load_dotenv

from snow_logging import logger, setup_logging
from snow_auth import ConfigurationError, TokenProvider, load_settings
from attachment_download import AttachmentDownloadError, download_attachment
from attachment_listing import download_all, list_attachments, load_attachment_records


def build_parser():
    parser = argparse.ArgumentParser(description='Download ServiceNow ticket attachments.')
    parser.add_argument('sys_id', nargs='?', help='Attachment sys_id (e.g., 01125e5a1b9b685017eeebd22a4bcb44)')
    parser.add_argument('--file-name', help='File name to save a single attachment as')
    parser.add_argument('--table-sys-id', help='Download every attachment of the ticket with this sys_id')
    parser.add_argument('--json-path', help='Path to a saved attachment listing (response.json)')
    parser.add_argument('--dest', default=os.getcwd(), help='Existing folder to save into (default: current folder)')
    parser.add_argument('--overwrite', action='store_true', help='Replace files that already exist')
    parser.add_argument('--append-id', action='store_true', help='Save as <name>_<sys_id>.<ext>')
    parser.add_argument('--dry-run', action='store_true', help='Only report what would be downloaded')
    parser.add_argument('--instance-url', help='ServiceNow instance URL (default: SNOW_INSTANCE_URL)')
    parser.add_argument('--log-dir', default='.', help='Folder to create the timestamped log folder in')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    sources = [args.sys_id, args.table_sys_id, args.json_path]
    if sum(1 for source in sources if source) != 1:
        parser.error('give exactly one of sys_id, --table-sys-id or --json-path')
    if args.sys_id and not args.file_name:
        parser.error('--file-name is required when downloading a single sys_id')

    load_dotenv()
    setup_logging(args.log_dir)

    try:
        token_provider = TokenProvider(load_settings(args.instance_url))
        auth = token_provider.auth_context()
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        return 1
    except requests.exceptions.RequestException:
        return 1

    options = {
        'destination': args.dest,
        'overwrite': args.overwrite,
        'append_id': args.append_id,
        'dry_run': args.dry_run,
    }

    if args.sys_id:
        try:
            download_attachment(args.sys_id, args.file_name, auth, **options)
        except AttachmentDownloadError as e:
            logger.error(f"❌ {e}")
            return 1
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Failed to download attachment sys_id= {args.sys_id}: {e}")
            return 1
        except OSError as e:
            logger.error(f"❌ Could not save attachment sys_id= {args.sys_id}: {e}")
            return 1
        return 0

    try:
        if args.table_sys_id:
            records = list_attachments(args.table_sys_id, auth)
        else:
            records = load_attachment_records(args.json_path)
    except (requests.exceptions.RequestException, OSError, ValueError) as e:
        logger.error(f"❌ Failed to get attachment list: {e}")
        return 1

    summary = download_all(records, token_provider.auth_context, **options)
    logger.info(
        f"✅ Done: {summary['downloaded']} downloaded, {summary['planned']} planned, "
        f"{summary['skipped']} skipped, {summary['failed']} failed"
    )
    return 1 if summary['failed'] or summary['skipped'] else 0


if __name__ == "__main__":
    sys.exit(main())
