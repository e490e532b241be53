#!/usr/bin/env python3
"""
Represents the entrypoint for command line tools.
"""

import argparse
import json
import os
import sys

from esdump.core import Dump, logger
from esdump.core.errors import ConfigurationInvalid
from esdump.core.options import TransferType


def json_argument(value):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"not valid JSON: {e}")


def get_argparser():
    argument_parser = argparse.ArgumentParser(
        description='esdump: move documents, mappings and settings between Elasticsearch and files')
    argument_parser.add_argument(
        '-l', '--level',
        type=str,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        dest='log_level',
        default=os.getenv("ESDUMP_LOG_LEVEL", "INFO"),
        help="Log level"
    )

    argument_parser.add_argument(
        '-i', '--input',
        dest='input',
        required=True,
        help='Source: an Elasticsearch URL (http://host:9200/index), a file, or $ for stdin',
    )
    argument_parser.add_argument(
        '-o', '--output',
        dest='output',
        required=True,
        help='Destination: an Elasticsearch URL, a file, or $ for stdout',
    )
    argument_parser.add_argument(
        '--input-index',
        dest='input_index',
        default=None,
        help='[Optional] Source index (and type) as /index/type, appended to --input',
    )
    argument_parser.add_argument(
        '--output-index',
        dest='output_index',
        default=None,
        help='[Optional] Destination index (and type) as /index/type, appended to --output',
    )

    argument_parser.add_argument(
        '--limit',
        type=int,
        default=100,
        help='Records to move per batch',
    )
    argument_parser.add_argument(
        '--offset',
        type=int,
        default=0,
        help='Records to skip before the first one transferred',
    )
    argument_parser.add_argument(
        '-t', '--type',
        dest='type',
        choices=[t.value for t in TransferType],
        default=TransferType.DATA.value,
        help='What to transfer',
    )
    argument_parser.add_argument(
        '--search-body',
        dest='filter_query',
        type=json_argument,
        default=None,
        help='[Optional] Query restricting which documents are transferred, e.g. '
             '\'{"query": {"term": {"key": "key1"}}}\'',
    )
    argument_parser.add_argument(
        '--source-only',
        dest='source_only',
        action='store_true',
        default=False,
        help='Write only the document source, without _index/_id metadata',
    )
    argument_parser.add_argument(
        '--json-array',
        dest='line_format',
        action='store_false',
        default=True,
        help='Write one JSON array instead of one JSON object per line',
    )
    argument_parser.add_argument(
        '--delete',
        dest='delete',
        action='store_true',
        default=False,
        help='Delete documents from the input once they have been written',
    )
    argument_parser.add_argument(
        '--scroll-time',
        dest='cursor_lease',
        default='10m',
        help='How long the source keeps a cursor alive between batches',
    )
    argument_parser.add_argument(
        '--all',
        dest='all',
        action='store_true',
        default=False,
        help='Transfer every index of the input cluster',
    )
    argument_parser.add_argument(
        '--concurrency',
        type=int,
        default=1,
        help='With --all, how many indices to transfer at once',
    )
    argument_parser.add_argument(
        '--exclude',
        nargs='*',
        default=[],
        help='With --all, indices to leave out',
    )
    argument_parser.set_defaults(func=dump)

    return argument_parser


def dump(args) -> int:
    dumper = Dump(
        args.input,
        args.output,
        input_index=args.input_index,
        output_index=args.output_index,
        limit=args.limit,
        offset=args.offset,
        type=args.type,
        filter_query=args.filter_query,
        source_only=args.source_only,
        line_format=args.line_format,
        delete=args.delete,
        cursor_lease=args.cursor_lease,
        all=args.all,
        concurrency=args.concurrency,
        exclude=args.exclude,
    )
    result = dumper.dump()
    logger.info(f"Total writes: {result.counters.total_written}")
    return 0 if result.ok else 1


def main(args=None):

    arg_parser = get_argparser()

    args = arg_parser.parse_args(args)

    try:
        logger.setLevel(args.log_level)
    except ValueError:
        print(f"Log level must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG. You entered {args.log_level}")

    try:
        return args.func(args)
    except ConfigurationInvalid as e:
        logger.error(f"{e.message} {e.details or ''}".strip())
        return 2


if __name__ == '__main__':
    sys.exit(main())
