"""Asset upload pipeline.

Creates one asset container, attaches every local file to its ``Source``
dataset and optionally publishes the result.  Files are uploaded one at a
time, in the order given.

Each file goes through three calls:

1. Register the file in the dataset (returns a pre-signed upload URL).
2. PUT the file content to that URL.
3. Finalize the file.

A failure after the container exists is reported as
:class:`errors.PartialFailureError` carrying the asset identity; the asset is
never deleted by this client, so callers resume against that identity.
"""

import logging
import os
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from api_client import ApiClient
from asset_api import (
    create_asset_container,
    create_dataset,
    create_file,
    finalize_file,
    set_dataset_type,
)
from errors import (
    ApiError,
    InvalidInputError,
    PartialFailureError,
    PublishIncompleteError,
    StatusInterruptedError,
    UamCliError,
)
from models.uamcli import AssetStatus, FileUploadResult
from models.unity import AssetCreateRequest, AssetIdentity, Dataset
from status_engine import set_status

logger = logging.getLogger("uamcli.uploader")

SOURCE_DATASET_NAME = "Source"

MODEL_3D = "3D Model"
ASSET_2D = "2D Asset"
AUDIO = "Audio"
VIDEO = "Video"
OTHER = "Other"

# Lowercase extension -> Asset Manager primary type
_PRIMARY_TYPES: Dict[str, str] = {
    # 3D models
    ".fbx": MODEL_3D,
    ".obj": MODEL_3D,
    ".gltf": MODEL_3D,
    ".glb": MODEL_3D,
    ".stl": MODEL_3D,
    ".step": MODEL_3D,
    ".stp": MODEL_3D,
    ".iges": MODEL_3D,
    ".igs": MODEL_3D,
    ".3ds": MODEL_3D,
    ".dae": MODEL_3D,
    ".blend": MODEL_3D,
    ".ply": MODEL_3D,
    ".usd": MODEL_3D,
    ".usda": MODEL_3D,
    ".usdc": MODEL_3D,
    ".usdz": MODEL_3D,
    ".max": MODEL_3D,
    ".ma": MODEL_3D,
    ".mb": MODEL_3D,
    ".sldprt": MODEL_3D,
    ".x_t": MODEL_3D,
    ".jt": MODEL_3D,
    # 2D
    ".png": ASSET_2D,
    ".jpg": ASSET_2D,
    ".jpeg": ASSET_2D,
    ".tga": ASSET_2D,
    ".tif": ASSET_2D,
    ".tiff": ASSET_2D,
    ".psd": ASSET_2D,
    ".svg": ASSET_2D,
    # Audio
    ".wav": AUDIO,
    ".mp3": AUDIO,
    ".ogg": AUDIO,
    ".flac": AUDIO,
    # Video
    ".mp4": VIDEO,
    ".mov": VIDEO,
    ".webm": VIDEO,
}

PathLike = Union[str, os.PathLike]


def infer_primary_type(file_paths: Sequence[Path]) -> str:
    """Primary type of an asset, taken from its first file's extension."""
    if not file_paths:
        return OTHER
    return _PRIMARY_TYPES.get(file_paths[0].suffix.lower(), OTHER)


def validate_files(file_paths: Iterable[PathLike]) -> List[Path]:
    """Check that every path is an existing, readable regular file.

    Raises:
        InvalidInputError: The list is empty or any path is unusable.
    """
    paths = [Path(p) for p in file_paths]
    if not paths:
        raise InvalidInputError("At least one file is required to create an asset")

    problems = []
    for path in paths:
        if not path.exists():
            problems.append(f"{path}: not found")
        elif not path.is_file():
            problems.append(f"{path}: not a regular file")
        elif not os.access(path, os.R_OK):
            problems.append(f"{path}: not readable")

    if problems:
        raise InvalidInputError(
            "Cannot upload: " + "; ".join(problems),
            paths=[str(p) for p in paths],
        )
    return paths


def _source_dataset(
    client: ApiClient,
    identity: AssetIdentity,
    datasets: List[Dataset],
    primary_type: str,
) -> Dataset:
    """Reuse the Source dataset created with the asset, or create it."""
    dataset = next((d for d in datasets if d.name == SOURCE_DATASET_NAME), None)
    if dataset is None:
        logger.info("No %s dataset returned, creating one", SOURCE_DATASET_NAME)
        dataset = create_dataset(client, identity, SOURCE_DATASET_NAME)
    set_dataset_type(client, identity, dataset, primary_type)
    return dataset


def upload_file(
    client: ApiClient,
    identity: AssetIdentity,
    dataset_id: str,
    file_path: Path,
) -> FileUploadResult:
    """Register, upload and finalize one file in a dataset."""
    start_time = time.time()
    created = create_file(client, identity, dataset_id, file_path)
    client.put_content(created.upload_url, file_path)
    finalize_file(client, identity, dataset_id, file_path.name)
    return FileUploadResult(
        path=str(file_path),
        dataset_id=dataset_id,
        size_bytes=file_path.stat().st_size,
        elapsed_seconds=time.time() - start_time,
    )


def create_asset(
    client: ApiClient,
    name: str,
    file_paths: Iterable[PathLike],
    auto_publish: bool = False,
    description: Optional[str] = None,
) -> AssetIdentity:
    """Create an asset from one or more local files.

    This is the main entry point for uploading.  It creates the asset
    container, uploads all files into its Source dataset and optionally
    publishes it.

    Args:
        client: API client.
        name: Asset name as shown in the Asset Manager.
        file_paths: Local files, uploaded in this order.
        auto_publish: Walk the asset to Published after all files succeed.
        description: Optional asset description.

    Returns:
        Identity of the created asset.

    Raises:
        InvalidInputError: Bad file list; nothing was sent.
        ApiError: The container itself could not be created.
        PartialFailureError: The container exists but some files failed.  An
            auth or vault failure stops the loop and marks every file not
            yet uploaded as failed.
        PublishIncompleteError: All files uploaded but publishing stopped.
    """
    paths = validate_files(file_paths)
    primary_type = infer_primary_type(paths)

    logger.info("Creating asset '%s' (%s)...", name, primary_type)
    created = create_asset_container(
        client,
        AssetCreateRequest(name=name, description=description, primaryType=primary_type),
    )
    identity = created.identity
    logger.info("Asset created with ID: %s (version %s)", identity.id, identity.version)

    failed: Dict[str, str] = {}
    try:
        dataset = _source_dataset(client, identity, created.datasets, primary_type)
    except UamCliError as exc:
        logger.error("Could not prepare the %s dataset: %s", SOURCE_DATASET_NAME, exc)
        failed = {str(p): f"dataset setup failed: {exc}" for p in paths}
        raise PartialFailureError(identity, failed) from exc

    logger.info("Uploading %d file(s)...", len(paths))
    for i, file_path in enumerate(paths, 1):
        file_size_mb = file_path.stat().st_size / (1024 * 1024)
        logger.info(
            "  [%d/%d] Uploading %s (%.2f MB)...",
            i, len(paths), file_path.name, file_size_mb,
        )
        try:
            result = upload_file(client, identity, dataset.dataset_id, file_path)
        except (ApiError, OSError) as exc:
            logger.error("  Upload of %s failed: %s", file_path.name, exc)
            failed[str(file_path)] = str(exc)
            continue
        except UamCliError as exc:
            # Auth or vault failure: every later call would fail the same way
            logger.error("  Upload of %s failed, stopping: %s", file_path.name, exc)
            for remaining in paths[i - 1:]:
                failed[str(remaining)] = str(exc)
            raise PartialFailureError(identity, failed) from exc
        logger.info("  Uploaded in %.1fs", result.elapsed_seconds)

    if failed:
        raise PartialFailureError(identity, failed)
    logger.info("All files uploaded successfully")

    if auto_publish:
        logger.info("Publishing asset...")
        try:
            set_status(client, identity, AssetStatus.PUBLISHED)
        except StatusInterruptedError as exc:
            raise PublishIncompleteError(identity, exc.reached, exc) from exc
        except UamCliError as exc:
            # Failed before any step was applied: the asset is still a draft.
            raise PublishIncompleteError(identity, AssetStatus.DRAFT, exc) from exc
        logger.info("Asset published")

    return identity
