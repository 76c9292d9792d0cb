#!/usr/bin/env python
"""
Command-line interface for the Pool Contract Billing System.

This module provides the main entry point for the PCBS CLI, with commands
for parsing contract emails, checking and importing addendum links, and
reporting invoice summaries. Every command prints JSON on stdout.
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import Any, List, Optional

from pcbs.config import get_config, get_section
from pcbs.db.session import create_tables, init_db, session_scope
from pcbs.db.operations import get_invoice_summary
from pcbs.document_processor.exceptions import PCBSError
from pcbs.document_processor.extractors.addendum import (
    fetch_addendum_html, parse_original_contract
)
from pcbs.document_processor.processor import ContractProcessor
from pcbs.utils.common import safe_json_dumps

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Set up root logging from the ``logging`` config section."""
    logging_config = get_section('logging')
    level = logging.DEBUG if verbose else getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=logging_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        stream=sys.stderr
    )


def _print_json(data: Any) -> None:
    print(safe_json_dumps(data, indent=2))


def _read_email(file_path: str) -> Optional[bytes]:
    path = Path(file_path)
    if not path.exists():
        logger.error(f"File not found: {path}")
        return None
    return path.read_bytes()


def setup_email_commands(subparsers):
    """Set up commands that read a contract email.

    Args:
        subparsers: argparse subparsers object
    """
    parse_parser = subparsers.add_parser('parse', help='Extract location and items from a contract email')
    parse_parser.add_argument('file_path', help='Path to the .eml file')
    parse_parser.add_argument('--save', action='store_true', help='Store the contract in the database')

    links_parser = subparsers.add_parser('links', help='List the contract and addendum links of an email')
    links_parser.add_argument('file_path', help='Path to the .eml file')

    sections_parser = subparsers.add_parser('sections', help='Detect importable sections of an email')
    sections_parser.add_argument('file_path', help='Path to the .eml file')


def setup_link_commands(subparsers):
    """Set up commands that fetch hosted contract pages.

    Args:
        subparsers: argparse subparsers object
    """
    validate_parser = subparsers.add_parser('validate-link', help='Check that a link is a reachable ProDBX page')
    validate_parser.add_argument('url', help='ProDBX view URL')

    addenda_parser = subparsers.add_parser('addenda', help='Fetch and parse addendum pages')
    addenda_parser.add_argument('urls', nargs='+', help='Addendum URLs, in merge order')
    addenda_parser.add_argument('--workers', type=int, help='Number of parallel fetches')

    original_parser = subparsers.add_parser('original', help='Fetch and parse the hosted original contract')
    original_parser.add_argument('url', help='Original contract URL')


def setup_db_commands(subparsers):
    """Set up database commands.

    Args:
        subparsers: argparse subparsers object
    """
    summary_parser = subparsers.add_parser('summary', help='Show the invoice summary of a stored order')
    summary_parser.add_argument('order_id', type=int, help='Order ID')

    db_parser = subparsers.add_parser('db', help='Database commands')
    db_subparsers = db_parser.add_subparsers(dest='db_command', help='Database command')
    init_parser = db_subparsers.add_parser('init', help='Create the database tables')
    init_parser.add_argument('--db-path', help='Path to database file (for SQLite)')


def parse_email(args) -> int:
    """Extract the contract of an email, optionally storing it."""
    raw = _read_email(args.file_path)
    if raw is None:
        return 1

    if not args.save:
        _print_json(ContractProcessor().parse_contract(raw))
        return 0

    with session_scope() as session:
        processor = ContractProcessor(session=session)
        table = processor.extract_table(raw)
        order = processor.save_contract(table)
        response = table.to_dict()
        response['orderId'] = order.id
        _print_json(response)
    return 0


def show_links(args) -> int:
    raw = _read_email(args.file_path)
    if raw is None:
        return 1
    _print_json(ContractProcessor().extract_contract_links(raw))
    return 0


def show_sections(args) -> int:
    raw = _read_email(args.file_path)
    if raw is None:
        return 1
    _print_json(ContractProcessor().detect_email_sections(raw))
    return 0


def validate_link(args) -> int:
    result = ContractProcessor().validate_link(args.url)
    _print_json(result)
    return 0 if result['valid'] else 1


def import_addenda(args) -> int:
    _print_json(ContractProcessor().import_addenda(args.urls, max_workers=args.workers))
    return 0


def parse_original(args) -> int:
    items = parse_original_contract(fetch_addendum_html(args.url))
    _print_json({'items': [item.to_dict() for item in items]})
    return 0


def show_summary(args) -> int:
    with session_scope() as session:
        _print_json(get_invoice_summary(session, args.order_id).to_dict())
    return 0


def init_database(args) -> int:
    if args.db_path:
        database_config = dict(get_config().get('database', {}))
        database_config['db_path'] = args.db_path
        init_db(database_config)
    create_tables()
    _print_json({'success': True})
    return 0


COMMANDS = {
    'parse': parse_email,
    'links': show_links,
    'sections': show_sections,
    'validate-link': validate_link,
    'addenda': import_addenda,
    'original': parse_original,
    'summary': show_summary,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every command group."""
    parser = argparse.ArgumentParser(description='Pool Contract Billing System')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command')
    setup_email_commands(subparsers)
    setup_link_commands(subparsers)
    setup_db_commands(subparsers)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the PCBS CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == 'db':
        if args.db_command == 'init':
            handler = init_database
        else:
            parser.print_help()
            return 1
    elif args.command in COMMANDS:
        handler = COMMANDS[args.command]
    else:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (PCBSError, ValueError) as e:
        logger.error(str(e))
        _print_json({'success': False, 'error': str(e)})
        return 1


if __name__ == '__main__':
    sys.exit(main())
