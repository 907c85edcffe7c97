"""Main CLI entry point for reassembler."""

import argparse
import json
import signal
import sys
import logging
import threading
from typing import Dict, Any

from . import __version__
from .config.settings import Config
from .operations.assemble import AssembleOperation
from .utils.logger import setup_logging


logger = logging.getLogger(__name__)


def print_json_output(data: Dict[str, Any]):
    """Print formatted JSON output."""
    print(json.dumps(data, indent=2))


def _install_cancel_handler(cancel_event: threading.Event):
    """Turn the first SIGINT into a cooperative cancel, returning the previous handler."""
    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancelling after the current operation, press Ctrl-C again to abort")
        cancel_event.set()

    return signal.signal(signal.SIGINT, handler)


def handle_assemble(args):
    """Handle assemble command."""
    cancel_event = threading.Event()
    previous_handler = _install_cancel_handler(cancel_event)
    try:
        config = Config(config_path=args.config, region=args.region)
        if args.local_path:
            config.local_path = args.local_path
        if args.put_role_to_assume:
            config.put_role_to_assume = args.put_role_to_assume
        if args.put_role_external_id:
            config.put_role_external_id = args.put_role_external_id

        assemble_op = AssembleOperation(
            config,
            cancel_event=cancel_event,
            show_progress=not args.no_progress
        )

        result = assemble_op.assemble(
            bucket=args.s3_bucket,
            prefix=args.s3_prefix,
            repository_name=args.repository_name,
            tag=args.tag,
            download_only=args.download_only,
            no_download=args.no_download,
            layers_path=args.layers_path,
            build_local=args.build_local,
            remove=args.rm,
            dry_run=args.dry_run
        )

        output = {
            "Operation": "Assemble",
            "Status": result['status'],
            "Bucket": result['bucket'],
            "Prefix": result['prefix'],
            "Tag": result['tag']
        }
        if 'downloaded' in result:
            output["ObjectsDownloaded"] = result['downloaded']
        if 'local_image_size' in result:
            output["LocalImageSize"] = result['local_image_size']
        if 'actions' in result:
            output["Actions"] = result['actions']
        if 'transfer' in result:
            output["Image"] = result['transfer'].to_dict()

        print_json_output(output)

    except Exception as e:
        logger.error(f"Assemble failed: {e}")
        print_json_output({
            "Operation": "Assemble",
            "Status": "Failed",
            "ErrorType": type(e).__name__,
            "Error": str(e)
        })
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog='reassembler',
        description='Reassembles Docker images from S3 storage into an ECR repository.'
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument(
        '-b', '--s3-bucket',
        required=True,
        help='S3 bucket holding the exported image'
    )
    parser.add_argument(
        '--region',
        help='AWS region (default: eu-west-2, or AWS_REGION)'
    )
    parser.add_argument(
        '--config',
        help='YAML settings file (default: REASSEMBLER_CONFIG)'
    )
    parser.add_argument(
        '-D', '--dry-run',
        action='store_true',
        help='Download and validate, but make no changes in the registry'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Log to file in addition to console'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    assemble_parser = subparsers.add_parser(
        'assemble',
        aliases=['a'],
        help='Assemble a Docker image from layers stored in an S3 bucket',
        description='Downloads exported image layers from S3 and pushes them to ECR.'
    )
    assemble_parser.add_argument('-p', '--s3-prefix', help='S3 key prefix of the exported image')
    assemble_parser.add_argument('-r', '--repository-name', help='Target repository name')
    assemble_parser.add_argument(
        '-l', '--local-path',
        help='Local directory to save the image layers (default: /tmp/docker-reassembler)'
    )
    assemble_parser.add_argument(
        '-t', '--tag',
        help='Tag to apply to the image (default: last component of the S3 prefix)'
    )
    assemble_parser.add_argument(
        '-P', '--put-role-to-assume',
        help='IAM role to assume for the ECR image put'
    )
    assemble_parser.add_argument('--put-role-external-id', help='External id for the assumed role')
    assemble_parser.add_argument(
        '--rm',
        action='store_true',
        help='Remove downloaded files after the put'
    )
    assemble_parser.add_argument(
        '--download-only',
        action='store_true',
        help='Only download the image layers from S3'
    )
    assemble_parser.add_argument(
        '--no-download',
        action='store_true',
        help='Do not download from S3, expect layers to be available in --layers-path'
    )
    assemble_parser.add_argument('--layers-path', help='Local path to image layer files')
    assemble_parser.add_argument(
        '--build-local',
        action='store_true',
        help='Also build an image tarball locally'
    )
    assemble_parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable upload progress bars'
    )
    assemble_parser.set_defaults(func=handle_assemble)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level, args.log_file)

    args.func(args)


if __name__ == '__main__':
    main()
