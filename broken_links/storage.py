# broken_links/storage.py
"""
File-backed screenshot store.

- Location: default is a visible folder in CWD; optionally an OS-specific app
  cache dir via platformdirs.
- Layout: <root>/<bucket>/<folder>/<check_id>/<execution_id>/<object>.png where
  "<bucket>/<folder>" is the run's screenshot storage_location.
- Failures never abort a run; they are reported on the ScreenshotOutput.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Optional

from platformdirs import user_cache_dir as _user_cache_dir

from broken_links.drivers import PageDriver
from broken_links.link_logic import get_storage_path_to_execution, sanitize_object_name
from broken_links.models import BaseError, ScreenshotOutput

log = logging.getLogger(__name__)


@dataclasses.dataclass
class StorageConfig:
    enabled: bool = True
    # Either a concrete directory path, or special marker "os-default"
    # for an OS-specific global cache location.
    directory: str = ".broken_links_artifacts"


class ArtifactStore:
    """
    Writes one execution's screenshots. Create one per run; screenshot
    numbering starts at 1 for every new store.
    """

    def __init__(
        self,
        cfg: StorageConfig,
        *,
        storage_location: str,
        check_id: str,
        execution_id: str,
        app_name: str = "broken_links",
    ):
        self.cfg = cfg
        self.storage_location = storage_location or ""
        self.check_id = check_id
        self.execution_id = execution_id
        self.app_name = app_name
        self.screenshot_number = 0
        self._root: Optional[Path] = self._resolve_root() if cfg.enabled else None
        if self._root is None:
            log.info("Screenshot storage not enabled")

    def _resolve_root(self) -> Path:
        directory = self.cfg.directory
        if directory == "os-default":
            directory = _user_cache_dir(self.app_name, appauthor=False)
        return Path(directory)

    @property
    def enabled(self) -> bool:
        return self._root is not None

    @property
    def bucket(self) -> str:
        return self.storage_location.split("/", 1)[0]

    @property
    def execution_directory(self) -> Optional[Path]:
        if self._root is None:
            return None
        relative = get_storage_path_to_execution(
            self.storage_location, self.check_id, self.execution_id
        )
        base = self._root / self.bucket if self.bucket else self._root
        return base / relative

    @property
    def execution_data_storage_path(self) -> str:
        """URI of this execution's folder, or "" when storage is disabled."""
        directory = self.execution_directory
        if directory is None:
            return ""
        return directory.resolve().as_uri()

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def upload_screenshot(self, driver: PageDriver, target_uri: str) -> ScreenshotOutput:
        """Capture the driver's current page and store it under the next number."""
        directory = self.execution_directory
        if directory is None:
            return ScreenshotOutput(
                screenshot_error=BaseError(
                    error_type="ScreenshotStorageDisabled",
                    error_message="Screenshot storage is not enabled.",
                )
            )

        self.screenshot_number += 1
        file_name = f"{sanitize_object_name(target_uri)}_{self.screenshot_number}.png"
        path = directory / file_name
        try:
            data = await driver.screenshot()
            # written inline: no writer thread may outlive a cancelled run
            self._write(path, data)
        except Exception as e:
            log.warning("Failed to store screenshot for %s: %s", target_uri, e)
            return ScreenshotOutput(
                screenshot_error=BaseError(error_type=type(e).__name__, error_message=str(e))
            )
        log.debug("Screenshot for %s written to %s", target_uri, path)
        return ScreenshotOutput(screenshot_file=file_name)
