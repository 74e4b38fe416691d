"""Command-line entry point for the Unity Asset Manager client.

Results are printed as JSON on stdout; logs go to stderr (and optionally a
log file).  The exit code tells the caller what kind of failure happened:

    0    success
    1    unexpected error
    2    input error (fix locally and rerun)
    3    remote error (inspect the asset in the Asset Manager)
    4    transport error (retry later)
    130  interrupted
"""

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from asset_api import download_asset, get_asset, search_assets
from configuration import (
    Configuration,
    build_client,
    default_configuration_path,
    delete_configuration,
    load_configuration,
    save_configuration,
)
from errors import UamCliError, UnknownStatusError
from metadata_mapper import (
    delete_metadata,
    load_metadata_file,
    register_text_field,
    upload_metadata,
)
from models.uamcli import AssetStatus
from models.unity import AssetIdentity
from secret_store import KeyringSecretStore
from status_engine import set_status
from uploader import create_asset

logger = logging.getLogger("uamcli.cli")

DEFAULT_ASSET_VERSION = "1"
EXIT_UNEXPECTED = 1
EXIT_INTERRUPTED = 130

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ===================================================================
#  Output helpers
# ===================================================================

def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _success(**fields: Any) -> Dict[str, Any]:
    return {"successful": True, **fields}


def _failure(error: Dict[str, Any]) -> Dict[str, Any]:
    return {"successful": False, "error": error}


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    if not verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def _identity(args: argparse.Namespace) -> AssetIdentity:
    return AssetIdentity(id=args.asset_id, version=args.asset_version)


def _client(args: argparse.Namespace):
    config = load_configuration(args.config)
    return build_client(config, KeyringSecretStore())


# ===================================================================
#  config commands
# ===================================================================

def cmd_config_set(args: argparse.Namespace) -> Dict[str, Any]:
    client_secret = args.client_secret
    if client_secret is None:
        client_secret = getpass.getpass("Client secret: ")

    fields: Dict[str, Any] = {
        "organization_id": args.organization,
        "project_id": args.project,
        "environment_id": args.environment,
        "client_id": args.client_id,
    }
    if args.base_url:
        fields["base_url"] = args.base_url
    if args.token_url:
        fields["token_url"] = args.token_url
    config = Configuration(**fields)

    path = save_configuration(
        config,
        path=args.config,
        client_secret=client_secret or None,
        secret_store=KeyringSecretStore(),
    )
    return _success(config_path=str(path), configuration=config.model_dump())


def cmd_config_get(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_configuration(args.config)
    return _success(configuration=config.model_dump())


def cmd_config_path(args: argparse.Namespace) -> Dict[str, Any]:
    path = Path(args.config).expanduser() if args.config else default_configuration_path()
    return _success(config_path=str(path), exists=path.exists())


def cmd_config_delete(args: argparse.Namespace) -> Dict[str, Any]:
    path = delete_configuration(args.config, secret_store=KeyringSecretStore())
    return _success(config_path=str(path), deleted=True)


# ===================================================================
#  asset commands
# ===================================================================

def cmd_asset_create(args: argparse.Namespace) -> Dict[str, Any]:
    with _client(args) as client:
        identity = create_asset(
            client,
            args.name,
            args.data,
            auto_publish=args.publish,
            description=args.description,
        )
    return _success(asset=identity.to_dict(), published=args.publish)


def cmd_asset_get(args: argparse.Namespace) -> Dict[str, Any]:
    with _client(args) as client:
        asset = get_asset(client, _identity(args))
    return _success(asset=asset.to_dict())


def cmd_asset_search(args: argparse.Namespace) -> Dict[str, Any]:
    with _client(args) as client:
        assets = search_assets(client, name=args.asset_name)
    return _success(count=len(assets), assets=[asset.to_dict() for asset in assets])


def cmd_asset_download(args: argparse.Namespace) -> Dict[str, Any]:
    output_dir = Path(args.download_dir).expanduser() if args.download_dir else None
    with _client(args) as client:
        files = download_asset(client, _identity(args), output_dir)
    return _success(files=[str(path) for path in files])


def cmd_asset_status_set(args: argparse.Namespace) -> Dict[str, Any]:
    try:
        target = AssetStatus.parse(args.status)
    except ValueError as exc:
        raise UnknownStatusError(str(exc)) from exc
    identity = _identity(args)
    with _client(args) as client:
        change = set_status(client, identity, target)
    return _success(asset=identity.to_dict(), **change.to_dict())


def cmd_asset_metadata_upload(args: argparse.Namespace) -> Dict[str, Any]:
    records = load_metadata_file(Path(args.data))
    identity = _identity(args)
    with _client(args) as client:
        upload_metadata(client, identity, records)
    return _success(asset=identity.to_dict(), metadata=records)


def cmd_asset_metadata_delete(args: argparse.Namespace) -> Dict[str, Any]:
    keys = [key for value in args.meta for key in value.split(",")]
    identity = _identity(args)
    with _client(args) as client:
        deleted = delete_metadata(client, identity, keys)
    return _success(asset=identity.to_dict(), deleted=deleted)


def cmd_asset_metadata_register(args: argparse.Namespace) -> Dict[str, Any]:
    with _client(args) as client:
        definition = register_text_field(client, args.name, display_name=args.display_name)
    return _success(field=definition.model_dump(by_alias=True, exclude_none=True))


# ===================================================================
#  Parser
# ===================================================================

def _add_identity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--asset-id", required=True, help="Asset ID")
    parser.add_argument(
        "--asset-version", default=DEFAULT_ASSET_VERSION,
        help=f"Asset version (default: {DEFAULT_ASSET_VERSION})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uamcli",
        description="Unity Asset Manager CLI: create assets, manage status and metadata",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to the configuration file (default: per-user config directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")

    commands = parser.add_subparsers(dest="command", required=True)

    # --- config ---
    config_parser = commands.add_parser("config", help="Manage credentials")
    config_commands = config_parser.add_subparsers(dest="config_command", required=True)

    config_set = config_commands.add_parser("set", help="Store credentials")
    config_set.add_argument("--organization", required=True, help="Organization ID")
    config_set.add_argument("--project", required=True, help="Project ID")
    config_set.add_argument("--environment", required=True, help="Environment ID")
    config_set.add_argument("--client-id", required=True, help="Service account key ID")
    config_set.add_argument(
        "--client-secret", default=None,
        help="Service account secret (prompted for when omitted)",
    )
    config_set.add_argument("--base-url", default=None, help=argparse.SUPPRESS)
    config_set.add_argument("--token-url", default=None, help=argparse.SUPPRESS)
    config_set.set_defaults(handler=cmd_config_set)

    config_commands.add_parser("get", help="Show stored identifiers").set_defaults(
        handler=cmd_config_get
    )
    config_commands.add_parser("path", help="Show the configuration file path").set_defaults(
        handler=cmd_config_path
    )
    config_commands.add_parser("delete", help="Remove configuration and secret").set_defaults(
        handler=cmd_config_delete
    )

    # --- asset ---
    asset_parser = commands.add_parser("asset", help="Work with assets")
    asset_commands = asset_parser.add_subparsers(dest="asset_command", required=True)

    create = asset_commands.add_parser("create", help="Create an asset from local files")
    create.add_argument("--name", required=True, help="Asset name")
    create.add_argument("--description", default=None, help="Asset description")
    create.add_argument(
        "--data", action="append", required=True,
        help="File to upload (repeat for several files)",
    )
    create.add_argument("--publish", action="store_true", help="Publish after upload")
    create.set_defaults(handler=cmd_asset_create)

    get = asset_commands.add_parser("get", help="Show an asset version")
    _add_identity_arguments(get)
    get.set_defaults(handler=cmd_asset_get)

    search = asset_commands.add_parser("search", help="List project assets")
    search.add_argument("--asset-name", default=None, help="Exact asset name to match")
    search.set_defaults(handler=cmd_asset_search)

    download = asset_commands.add_parser("download", help="Download asset files")
    _add_identity_arguments(download)
    download.add_argument(
        "--download-dir", default=None, help="Target directory (default: ~/Downloads)"
    )
    download.set_defaults(handler=cmd_asset_download)

    status_parser = asset_commands.add_parser("status", help="Workflow status")
    status_commands = status_parser.add_subparsers(dest="status_command", required=True)
    status_set = status_commands.add_parser("set", help="Move an asset to a status")
    _add_identity_arguments(status_set)
    status_set.add_argument(
        "--status", required=True,
        help="Target status: " + ", ".join(s.value for s in AssetStatus),
    )
    status_set.set_defaults(handler=cmd_asset_status_set)

    metadata_parser = asset_commands.add_parser("metadata", help="Asset metadata")
    metadata_commands = metadata_parser.add_subparsers(dest="metadata_command", required=True)

    upload = metadata_commands.add_parser("upload", help="Apply a Name,Value CSV file")
    _add_identity_arguments(upload)
    upload.add_argument("--data", required=True, help="Metadata CSV file")
    upload.set_defaults(handler=cmd_asset_metadata_upload)

    delete = metadata_commands.add_parser("delete", help="Remove metadata fields")
    _add_identity_arguments(delete)
    delete.add_argument(
        "--meta", action="append", required=True,
        help="Field name(s), comma separated or repeated",
    )
    delete.set_defaults(handler=cmd_asset_metadata_delete)

    register = metadata_commands.add_parser("register", help="Register a text field")
    register.add_argument("--name", required=True, help="Field name")
    register.add_argument("--display-name", default=None, help="Display name")
    register.set_defaults(handler=cmd_asset_metadata_register)

    return parser


# ===================================================================
#  Entry point
# ===================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    handler: Callable[[argparse.Namespace], Dict[str, Any]] = args.handler
    try:
        result = handler(args)
    except UamCliError as exc:
        logger.error("%s", exc.message)
        _print_json(_failure(exc.to_dict()))
        return exc.exit_code
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.exception("Unexpected error")
        _print_json(
            _failure(
                {
                    "type": type(exc).__name__,
                    "category": "unexpected",
                    "error_message": str(exc),
                }
            )
        )
        return EXIT_UNEXPECTED

    _print_json(result)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
