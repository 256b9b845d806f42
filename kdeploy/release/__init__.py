"""Release core: manifest model, retention, divergence, sync and publish."""

from __future__ import annotations

from .divergence import DivergenceDetector, DivergenceReport, Verdict
from .errors import (
    DownloadError,
    MalformedManifestError,
    MissingAssetWarning,
    RetentionIOError,
    UploadError,
)
from .manifest import (
    ArtifactKind,
    ArtifactRecord,
    Manifest,
    PackageMarkers,
    classify,
    parse_manifest,
    serialize_manifest,
)
from .publisher import Publisher, PublishResult
from .retention import RetentionEngine, RetentionOutcome, find_missing_assets, plan_retention
from .sync import SyncClient, SyncResult

__all__ = [
    "ArtifactKind",
    "ArtifactRecord",
    "DivergenceDetector",
    "DivergenceReport",
    "DownloadError",
    "MalformedManifestError",
    "Manifest",
    "MissingAssetWarning",
    "PackageMarkers",
    "PublishResult",
    "Publisher",
    "RetentionEngine",
    "RetentionIOError",
    "RetentionOutcome",
    "SyncClient",
    "SyncResult",
    "UploadError",
    "Verdict",
    "classify",
    "find_missing_assets",
    "parse_manifest",
    "plan_retention",
    "serialize_manifest",
]
