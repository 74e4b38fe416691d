"""Unity Asset Manager REST API models."""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AssetIdentity(BaseModel):
    """
    Identity of an asset version, as assigned by the service.

    Attributes:
        id (str): The asset ID.
        version (str): The asset version.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "assetId"))
    version: str = Field(validation_alias=AliasChoices("version", "assetVersion"))

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "version": self.version}


class Dataset(BaseModel):
    """
    A sub-grouping of files within an asset (e.g. "Source", "Preview").

    Attributes:
        dataset_id (str): The dataset ID.
        name (str): The dataset name.
        primary_type (Optional[str]): The dataset's primary type.
    """

    model_config = ConfigDict(populate_by_name=True)

    dataset_id: str = Field(alias="datasetId")
    name: str
    primary_type: Optional[str] = Field(default=None, alias="primaryType")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Asset(BaseModel):
    """
    An asset version with its datasets and metadata.

    Attributes:
        id (str): The asset ID.
        version (str): The asset version.
        name (str): Display name in the Asset Manager.
        description (Optional[str]): Free text description.
        tags (Optional[List[str]]): User tags.
        system_tags (Optional[List[str]]): Tags assigned by the service.
        labels (List[str]): Version labels.
        primary_type (Optional[str]): Asset type, e.g. "3D Model".
        status (str): Workflow status as reported by the service.
        frozen (bool): Whether the version is frozen.
        source_project_id (Optional[str]): Project that owns the asset.
        project_ids (List[str]): Projects the asset is linked to.
        preview_file (Optional[str]): Path of the preview file.
        preview_file_dataset_id (Optional[str]): Dataset holding the preview.
        datasets (List[Dataset]): Datasets of this version.
        metadata (Dict[str, Any]): Field name to value.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("assetId", "id"))
    version: str = Field(validation_alias=AliasChoices("assetVersion", "version"))
    name: str
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    system_tags: Optional[List[str]] = Field(
        default=None, validation_alias=AliasChoices("systemTags", "system_tags")
    )
    labels: List[str] = []
    primary_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("primaryType", "primary_type")
    )
    status: str
    frozen: bool = Field(
        default=False, validation_alias=AliasChoices("isFrozen", "frozen")
    )
    source_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sourceProjectId", "source_project_id"),
    )
    project_ids: List[str] = Field(
        default=[], validation_alias=AliasChoices("projectIds", "project_ids")
    )
    preview_file: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("previewFile", "preview_file")
    )
    preview_file_dataset_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("previewFileDatasetId", "preview_file_dataset_id"),
    )
    datasets: List[Dataset] = []
    metadata: Dict[str, Any] = {}

    @property
    def identity(self) -> AssetIdentity:
        return AssetIdentity(id=self.id, version=self.version)

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the model to a JSON-compatible dictionary.
        """
        return self.model_dump(mode="json", exclude_none=True)


class AssetCreateRequest(BaseModel):
    """
    Body of the asset creation call.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    primary_type: str = Field(alias="primaryType")
    tags: Optional[List[str]] = None

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AssetCreateResponse(BaseModel):
    """
    Reply to the asset creation call.
    """

    id: str = Field(validation_alias=AliasChoices("assetId", "id"))
    version: str = Field(validation_alias=AliasChoices("assetVersion", "version"))
    datasets: List[Dataset] = []

    @property
    def identity(self) -> AssetIdentity:
        return AssetIdentity(id=self.id, version=self.version)


class AssetSearchResponse(BaseModel):
    assets: List[Asset] = []
    next: Optional[str] = None


class FileCreateRequest(BaseModel):
    """
    Registers a file inside a dataset before its content is uploaded.

    Attributes:
        file_path (str): Remote file path (the local file name).
        file_size (int): Size in bytes.
        description (Optional[str]): Free text description.
    """

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")
    file_size: int = Field(alias="fileSize")
    description: Optional[str] = None

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FileCreateResponse(BaseModel):
    upload_url: str = Field(validation_alias=AliasChoices("uploadUrl", "upload_url"))


class DownloadUrl(BaseModel):
    file_path: str = Field(validation_alias=AliasChoices("filePath", "file_path"))
    url: str


class DownloadUrlsResponse(BaseModel):
    files: List[DownloadUrl] = []


class FieldDefinition(BaseModel):
    """
    Organization-level metadata field template.

    Attributes:
        name (str): Field key used in asset metadata.
        type (str): Value type; this client only registers "text".
        display_name (Optional[str]): Human readable label.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str = "text"
    display_name: Optional[str] = Field(default=None, alias="displayName")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TokenResponse(BaseModel):
    access_token: str = Field(validation_alias=AliasChoices("accessToken", "access_token"))
    expires_in: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("expiresIn", "expires_in")
    )
