import json
import sys
from argparse import ArgumentParser, Namespace
from typing import List, Optional, TextIO

from tflib.diagnostics import Diagnostics
from tflib.json import to_json
from tflib.logger import log, setup_logger
from tflib.resource_data import ResourceData
from tflib.types import Json
from tf_provider_aws import AwsProvider


def add_args(arg_parser: ArgumentParser) -> None:
    arg_parser.add_argument("--verbose", "-v", dest="verbose", action="store_true", help="Verbose logging")
    arg_parser.add_argument("--quiet", dest="quiet", action="store_true", help="Only log critical errors")
    arg_parser.add_argument("--log-text", dest="log_text", action="store_true", help="Log plain text instead of json")
    commands = arg_parser.add_subparsers(dest="command", required=True)
    commands.add_parser("permissions", help="Print the IAM permissions required by all resources and data sources")
    validate = commands.add_parser("validate", help="Validate the configuration of a resource or data source")
    validate.add_argument("kind", help="Kind of the resource or data source")
    validate.add_argument("--data-source", dest="data_source", action="store_true", help="Validate a data source")
    read = commands.add_parser("read-data-source", help="Read a data source")
    read.add_argument("kind", help="Kind of the data source")


def diagnostics_json(diagnostics: Diagnostics) -> List[Json]:
    return [to_json(d) for d in diagnostics]


def run(args: Namespace, stdin: TextIO, stdout: TextIO) -> int:
    """
    Commands that need input read one json object from stdin:
    {"provider": <provider configuration>, "config": <resource or data source configuration>}
    Results are written as json to stdout. The exit code is 1 if an error diagnostic was reported.
    """
    if args.command == "permissions":
        json.dump(AwsProvider().required_permissions(), stdout)
        return 0

    request: Json = json.load(stdin)
    provider = AwsProvider.from_config(request.get("provider") or {})
    config: Optional[Json] = request.get("config")
    result: Json
    if args.command == "validate":
        validate = provider.validate_data_source if args.data_source else provider.validate_resource
        diagnostics = validate(args.kind, config)
        result = {"diagnostics": diagnostics_json(diagnostics)}
    else:
        schema = provider.data_source_schema(args.kind) or {}
        data = ResourceData(schema, config or {})
        diagnostics = provider.read_data_source(args.kind, data)
        result = {"state": data.state(), "diagnostics": diagnostics_json(diagnostics)}
    json.dump(result, stdout)
    if diagnostics.has_error():
        log.debug(f"{args.command} {args.kind} reported {len(diagnostics.errors())} errors")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    arg_parser = ArgumentParser(prog="tf-provider-aws", description="AWS provider callbacks")
    add_args(arg_parser)
    args = arg_parser.parse_args(argv)
    setup_logger("tf-provider-aws", verbose=args.verbose, quiet=args.quiet, json_format=not args.log_text)
    sys.exit(run(args, sys.stdin, sys.stdout))


if __name__ == "__main__":
    main()
