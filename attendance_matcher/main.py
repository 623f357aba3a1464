"""
Attendance Matcher - Main Entry Point

Loads configuration, initializes the face extractor once and serves the
recognition HTTP API.
"""

import argparse
import dataclasses
import os
import sys
from pathlib import Path

from .app import create_app
from .attendance import SupabaseAttendanceRecorder
from .backend import BackendClient
from .config import load_config
from .face_app import FaceExtractor
from .logging_config import get_logger, setup_logging
from .service import AttendanceMatcherService
from .store import SupabaseEmbeddingStore

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from attendance_matcher/.env if present."""
    env_path = Path(__file__).resolve().parent / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Attendance Matcher - face recognition attendance API'
    )

    parser.add_argument(
        '--supabase-url',
        type=str,
        help='Backend URL (or set SUPABASE_URL)'
    )

    parser.add_argument(
        '--port',
        type=int,
        help='HTTP port (or set API_PORT)'
    )

    parser.add_argument(
        '--kiosk-id',
        type=str,
        help='Capture point identifier used in logs (or set KIOSK_ID)'
    )

    parser.add_argument(
        '--threshold',
        type=float,
        help='Match distance threshold, lower is stricter (or set MATCH_THRESHOLD)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)

    if args.threshold is not None and args.threshold < 0:
        parser.error('--threshold must be non-negative.')

    return args


def main(argv=None) -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args(argv)

    config = load_config()
    overrides = {
        'supabase_url': args.supabase_url.rstrip('/') if args.supabase_url else None,
        'api_port': args.port,
        'kiosk_id': args.kiosk_id,
        'match_threshold': args.threshold,
        'debug_mode': True if args.debug else None,
    }
    config = dataclasses.replace(
        config, **{k: v for k, v in overrides.items() if v is not None}
    )

    setup_logging(config.kiosk_id, config.debug_mode)
    logger = get_logger(__name__)

    logger.info('=' * 60)
    logger.info('Attendance Matcher')
    logger.info('=' * 60)
    logger.info(f'Backend: {config.supabase_url}')
    logger.info(f'Threshold: {config.match_threshold}')
    logger.info(f'Late cutoff: {config.late_cutoff.strftime("%H:%M")}')
    logger.info('=' * 60)

    if not config.supabase_key:
        logger.warning('SUPABASE_KEY is not set, backend requests will be anonymous')

    try:
        extractor = FaceExtractor(config).initialize()
        client = BackendClient(config)
        service = AttendanceMatcherService(
            config,
            extractor,
            SupabaseEmbeddingStore(client),
            SupabaseAttendanceRecorder(client),
        )

        app = create_app(config, service)
        logger.info(f'API listening on http://0.0.0.0:{config.api_port}')
        app.run(
            host='0.0.0.0',
            port=config.api_port,
            threaded=True,
            debug=False,
            use_reloader=False
        )

    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
        sys.exit(0)
    except Exception as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
