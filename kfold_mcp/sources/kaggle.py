"""Kaggle data source."""

import os
import json
import asyncio
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

from ..harness.models import Example
from .csv_source import CsvSource, SourceError


@dataclass
class KaggleConfig:
    """Configuration for Kaggle downloads."""
    username: Optional[str] = None
    key: Optional[str] = None
    config_dir: Optional[Path] = None
    data_dir: Path = Path("./kfold_data/kaggle")

    def __post_init__(self):
        if self.config_dir is None:
            self.config_dir = Path.home() / ".kaggle"


class KaggleError(SourceError):
    """Base exception for Kaggle operations."""
    pass


class KaggleAuthError(KaggleError):
    """Authentication error."""
    pass


def resolve_credentials(config: KaggleConfig, environ=None) -> dict:
    """Find Kaggle credentials.

    Explicit config wins over KAGGLE_* environment variables, which win
    over ``kaggle.json``. A key with the ``KGAT_`` prefix is an access token.
    """
    environ = os.environ if environ is None else environ

    username = config.username or environ.get("KAGGLE_USERNAME")
    key = config.key or environ.get("KAGGLE_KEY")
    api_token = environ.get("KAGGLE_API_TOKEN")

    kaggle_json = config.config_dir / "kaggle.json"
    if kaggle_json.exists():
        with open(kaggle_json) as f:
            creds = json.load(f)
        username = username or creds.get("username")
        if not key and not api_token:
            key = creds.get("key")

    if key and key.startswith("KGAT_"):
        api_token, key = key, None

    if not api_token and (not username or not key):
        raise KaggleAuthError(
            f"No Kaggle credentials found. Create {kaggle_json}, set KAGGLE_API_TOKEN, "
            f"or set KAGGLE_USERNAME and KAGGLE_KEY."
        )

    return {"api_token": api_token, "username": username, "key": key}


class KaggleSource:
    """Downloads a CSV file from a Kaggle dataset or competition.

    Exactly one of ``dataset`` (``owner/slug``) or ``competition`` must be
    given. Archives are extracted under ``config.data_dir`` and reused on
    later loads unless ``force`` is set.
    """

    def __init__(
        self,
        file_name: str,
        target_column: str,
        dataset: Optional[str] = None,
        competition: Optional[str] = None,
        feature_columns: Optional[list[str]] = None,
        config: Optional[KaggleConfig] = None,
        force: bool = False,
    ):
        if bool(dataset) == bool(competition):
            raise ValueError("Specify exactly one of dataset or competition")
        self.file_name = file_name
        self.target_column = target_column
        self.dataset = dataset
        self.competition = competition
        self.feature_columns = feature_columns
        self.config = config or KaggleConfig()
        self.force = force

    @property
    def download_dir(self) -> Path:
        if self.dataset:
            return self.config.data_dir / "datasets" / self.dataset.replace("/", "_")
        return self.config.data_dir / "competitions" / self.competition

    def _client(self):
        from kagglesdk import KaggleClient as SdkClient

        creds = resolve_credentials(self.config)
        if self.config.config_dir:
            os.environ["KAGGLE_CONFIG_DIR"] = str(self.config.config_dir)
        return SdkClient(
            api_token=creds["api_token"],
            username=creds["username"] if not creds["api_token"] else None,
            password=creds["key"] if not creds["api_token"] else None,
        )

    def _request_archive(self, client):
        if self.dataset:
            from kagglesdk.datasets.types.dataset_api_service import ApiDownloadDatasetRequest

            request = ApiDownloadDatasetRequest()
            owner, _, slug = self.dataset.partition("/")
            if slug:
                request.owner_slug = owner
                request.dataset_slug = slug
            else:
                request.dataset_slug = owner
            return client.datasets.dataset_api_client.download_dataset(request)

        from kagglesdk.competitions.types.competition_api_service import ApiDownloadDataFilesRequest

        request = ApiDownloadDataFilesRequest()
        request.competition_name = self.competition
        return client.competitions.competition_api_client.download_data_files(request)

    def download(self) -> Path:
        """Download and extract the archive (synchronous)."""
        path = self.download_dir
        path.mkdir(parents=True, exist_ok=True)

        if not self.force and any(path.iterdir()):
            return path

        with self._client() as client:
            response = self._request_archive(client)
            if response.status_code != 200:
                raise KaggleError(f"Download failed: {response.status_code}")
            with zipfile.ZipFile(BytesIO(response.content)) as zf:
                zf.extractall(path)

        return path

    def _find_file(self, root: Path) -> Path:
        direct = root / self.file_name
        if direct.exists():
            return direct
        for candidate in root.rglob(self.file_name):
            return candidate
        raise SourceError(f"File not found in download: {self.file_name}")

    def _load(self) -> list[Example]:
        path = self._find_file(self.download())
        return CsvSource(path, self.target_column, self.feature_columns)._load()

    async def load(self) -> list[Example]:
        """Download if needed and return the file's examples."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load)
