"""Unity Asset Manager endpoint operations.

One function per REST endpoint, all built on :class:`api_client.ApiClient`.
They perform no orchestration: the upload pipeline, status engine and
metadata mapper compose them.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from api_client import TRANSFER_TIMEOUT, ApiClient
from errors import MalformedResponseError
from models.uamcli import AssetStatus
from models.unity import (
    Asset,
    AssetCreateRequest,
    AssetCreateResponse,
    AssetIdentity,
    AssetSearchResponse,
    Dataset,
    DownloadUrlsResponse,
    FieldDefinition,
    FileCreateRequest,
    FileCreateResponse,
)

logger = logging.getLogger("uamcli.api")

ASSETS_PATH = "/assets/v1/projects/{project_id}/assets"
ASSET_VERSION_PATH = ASSETS_PATH + "/{asset_id}/versions/{asset_version}"
DATASETS_PATH = ASSET_VERSION_PATH + "/datasets"
DATASET_PATH = DATASETS_PATH + "/{dataset_id}"
DATASET_FILES_PATH = DATASET_PATH + "/files"
FINALIZE_PATH = DATASET_FILES_PATH + "/{file_name}/finalize"
STATUS_PATH = ASSET_VERSION_PATH + "/status/{status}"
METADATA_PATH = ASSET_VERSION_PATH + "/metadata"
DOWNLOAD_URLS_PATH = ASSET_VERSION_PATH + "/download-urls"
SEARCH_PATH = ASSETS_PATH + "/search"
FIELDS_PATH = "/assets/v1/organizations/{organization_id}/templates/fields"


def _version_path(template: str, client: ApiClient, identity: AssetIdentity, **extra: str) -> str:
    return template.format(
        project_id=quote(client.project_id, safe=""),
        asset_id=quote(identity.id, safe=""),
        asset_version=quote(identity.version, safe=""),
        **{key: quote(value, safe="") for key, value in extra.items()},
    )


# ===================================================================
#  Assets
# ===================================================================

def create_asset_container(
    client: ApiClient,
    request: AssetCreateRequest,
) -> AssetCreateResponse:
    """Create an empty asset (status Draft) in the configured project."""
    path = ASSETS_PATH.format(project_id=quote(client.project_id, safe=""))
    return client.post(path, body=request.to_request(), model=AssetCreateResponse)


def get_asset(client: ApiClient, identity: AssetIdentity) -> Asset:
    """Fetch an asset version with all fields.

    Raises:
        NotFoundError: No such asset version.
    """
    path = _version_path(ASSET_VERSION_PATH, client, identity)
    return client.get(path, params={"IncludeFields": "*"}, model=Asset)


def update_asset(client: ApiClient, identity: AssetIdentity, changes: Dict[str, Any]) -> None:
    """Partially update an asset version (name, description, metadata...)."""
    path = _version_path(ASSET_VERSION_PATH, client, identity)
    client.patch(path, body=changes)


def search_assets(client: ApiClient, name: Optional[str] = None) -> List[Asset]:
    """List the assets of the configured project, sorted by name.

    Args:
        client: API client.
        name: When given, keep only assets with exactly this name.
    """
    path = SEARCH_PATH.format(project_id=quote(client.project_id, safe=""))
    body = {
        "projectIds": [client.project_id],
        "pagination": {"sortingField": "name"},
    }
    response = client.post(
        path, body=body, params={"includeFields": "*"}, model=AssetSearchResponse
    )
    assets = response.assets
    if name is not None:
        assets = [asset for asset in assets if asset.name == name]
    return assets


def change_status(client: ApiClient, identity: AssetIdentity, status: AssetStatus) -> None:
    """Request a single workflow step for an asset version."""
    path = _version_path(STATUS_PATH, client, identity, status=status.path_segment)
    client.patch(path)


# ===================================================================
#  Datasets and files
# ===================================================================

def create_dataset(client: ApiClient, identity: AssetIdentity, name: str) -> Dataset:
    path = _version_path(DATASETS_PATH, client, identity)
    return client.post(path, body={"name": name}, model=Dataset)


def set_dataset_type(
    client: ApiClient,
    identity: AssetIdentity,
    dataset: Dataset,
    primary_type: str,
) -> None:
    """Set the primary type of a dataset (e.g. "3D Model")."""
    path = _version_path(DATASET_PATH, client, identity, dataset_id=dataset.dataset_id)
    update = Dataset(datasetId=dataset.dataset_id, name=dataset.name, primaryType=primary_type)
    client.patch(path, body=update.to_request())


def create_file(
    client: ApiClient,
    identity: AssetIdentity,
    dataset_id: str,
    file_path: Path,
) -> FileCreateResponse:
    """Register a file in a dataset and obtain its upload URL."""
    path = _version_path(DATASET_FILES_PATH, client, identity, dataset_id=dataset_id)
    request = FileCreateRequest(filePath=file_path.name, fileSize=file_path.stat().st_size)
    return client.post(
        path, body=request.to_request(), model=FileCreateResponse, timeout=TRANSFER_TIMEOUT
    )


def finalize_file(
    client: ApiClient,
    identity: AssetIdentity,
    dataset_id: str,
    file_name: str,
) -> None:
    """Mark an uploaded file as complete."""
    path = _version_path(
        FINALIZE_PATH, client, identity, dataset_id=dataset_id, file_name=file_name
    )
    client.post(path, timeout=TRANSFER_TIMEOUT)


def get_download_urls(client: ApiClient, identity: AssetIdentity) -> DownloadUrlsResponse:
    path = _version_path(DOWNLOAD_URLS_PATH, client, identity)
    return client.get(path, model=DownloadUrlsResponse)


def download_asset(
    client: ApiClient,
    identity: AssetIdentity,
    output_dir: Optional[Path] = None,
) -> List[Path]:
    """Download every file of an asset version.

    Args:
        client: API client.
        identity: Asset version to download.
        output_dir: Target directory; defaults to ``~/Downloads``.

    Returns:
        Local paths of the downloaded files.
    """
    target = output_dir if output_dir is not None else Path.home() / "Downloads"
    urls = get_download_urls(client, identity)
    logger.info("Downloading %d file(s) of asset %s", len(urls.files), identity.id)

    downloaded = []
    root = target.resolve()
    for item in urls.files:
        destination = (target / item.file_path).resolve()
        if root not in destination.parents:
            raise MalformedResponseError(
                f"Refusing to write outside {target}: {item.file_path}"
            )
        client.download(item.url, destination)
        logger.info("  %s", destination)
        downloaded.append(destination)
    return downloaded


# ===================================================================
#  Metadata
# ===================================================================

def delete_metadata_keys(client: ApiClient, identity: AssetIdentity, keys: Iterable[str]) -> None:
    path = _version_path(METADATA_PATH, client, identity)
    client.delete(path, params={"keys": list(keys)})


def get_field_definition(client: ApiClient, name: str) -> FieldDefinition:
    """Fetch an organization metadata field template.

    Raises:
        NotFoundError: The field is not registered.
    """
    path = FIELDS_PATH.format(organization_id=quote(client.organization_id, safe=""))
    return client.get(f"{path}/{quote(name, safe='')}", model=FieldDefinition)


def register_field_definition(client: ApiClient, definition: FieldDefinition) -> None:
    path = FIELDS_PATH.format(organization_id=quote(client.organization_id, safe=""))
    client.post(path, body=definition.to_request())
