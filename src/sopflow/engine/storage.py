"""Local filesystem artifact store."""

import json
import re
from datetime import datetime
from pathlib import Path

from sopflow.core.schemas import ArtifactRecord


def _safe_name(name: str) -> str:
    return re.sub(r"[^\w.-]+", "_", name).strip("._") or "artifact"


class LocalArtifactStore:
    """Artifact store using the local filesystem.

    Stores records in a directory structure:
    data_dir/
      {phase}/
        {YYYYmmdd-HHMMSS}/
          {name}.json
          {name}/
            {attachment names}
    """

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self._data_dir = Path(data_dir or Path.cwd() / "data")
        self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def save(self, record: ArtifactRecord) -> str:
        """Write the payload as JSON plus any binary attachments.

        Attachments go in a directory named after the record, so records
        saved in the same second keep their own files.

        Returns:
            Path of the written JSON file
        """
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        target_dir = self._data_dir / record.phase_id.value / timestamp
        target_dir.mkdir(parents=True, exist_ok=True)

        name = _safe_name(record.name)
        payload_path = target_dir / f"{name}.json"
        payload_path.write_text(json.dumps(record.payload, indent=2, default=str))

        if record.attachments:
            attachment_dir = target_dir / name
            attachment_dir.mkdir(exist_ok=True)
            for filename, content in record.attachments.items():
                (attachment_dir / _safe_name(filename)).write_bytes(content)

        return str(payload_path)

    def load(self, path: Path | str) -> dict:
        """Load a JSON payload written by save."""
        artifact_path = Path(path)
        if not artifact_path.exists():
            raise FileNotFoundError(f"Artifact not found: {artifact_path}")
        return json.loads(artifact_path.read_text())
