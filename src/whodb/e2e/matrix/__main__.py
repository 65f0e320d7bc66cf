# src/whodb/e2e/matrix/__main__.py
import argparse
import json
import logging
import sys

from .errors import FixtureConfigError, MatrixError
from .loader import FixtureStore, iter_documents
from .matrix import DatabaseMatrix
from .scenarios import register_all
from .settings import load_settings
from .types import ALL_CATEGORIES
from .validator import validate_all

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Validate database fixtures and inspect the test matrix.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--log-level', default='INFO',
                        help='Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)')
    parser.add_argument(
        '--fixtures-dir',
        action='append',
        dest='fixtures_dirs',
        help='Fixture directory; repeat for several (default: FIXTURES_DIR/EE_FIXTURES_DIR or settings file)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('validate', help='Validate every fixture; exits 1 when any fixture has errors')

    list_parser = subparsers.add_parser('list', help='List the databases a scenario group would run against')
    list_parser.add_argument('--category', default=ALL_CATEGORIES,
                             help='sql, document, keyvalue or all (default: all)')
    list_parser.add_argument('--feature', action='append', dest='features', default=[],
                             help='Required feature; repeat for several')
    list_parser.add_argument('--cases', action='store_true',
                             help='Print the test ids of every built-in scenario group instead')

    return parser.parse_args(argv)


def run_validate(directories) -> int:
    documents = {}
    for fixture_id, document, source in iter_documents(directories):
        documents[fixture_id] = document
    results = validate_all(documents)
    print(json.dumps([result.to_dict() for result in results.values()], indent=2, ensure_ascii=False))
    return 0 if all(result.valid for result in results.values()) else 1


def run_list(args, settings) -> int:
    store = FixtureStore.load(settings.fixtures_dirs)
    matrix = DatabaseMatrix(store, settings)
    if args.cases:
        register_all(matrix)
        for test_id in matrix.test_ids():
            print(test_id)
        return 0
    selected = [
        fixture for fixture in matrix.select(args.category, args.features)
        if matrix.target_matches(fixture.id, fixture.type)
    ]
    print(json.dumps([fixture.to_dict() for fixture in selected], indent=2, ensure_ascii=False))
    return 0


def main(argv=None):
    args = parse_args(argv)

    numeric_level = getattr(logging, args.log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {args.log_level}')
    logging.getLogger().setLevel(numeric_level)

    try:
        settings = load_settings()
        if args.fixtures_dirs:
            settings.fixtures_dirs = args.fixtures_dirs
        if args.command == 'validate':
            return run_validate(settings.fixtures_dirs)
        return run_list(args, settings)
    except FixtureConfigError as e:
        logger.error(f"Fixture configuration error: {e}")
        return 1
    except MatrixError as e:
        logger.error(f"Test matrix error: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
