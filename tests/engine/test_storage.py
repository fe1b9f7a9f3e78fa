"""Tests for the local artifact store and value generators."""

import re
from pathlib import Path

import pytest

from sopflow.core.schemas import ArtifactRecord, PhaseId
from sopflow.engine.generators import FakerValueGenerator
from sopflow.engine.storage import LocalArtifactStore


class TestLocalArtifactStore:
    """Tests for LocalArtifactStore."""

    def test_save_writes_payload_and_attachments(self, tmp_path: Path) -> None:
        """Test save writes JSON plus binary attachments under the record name."""
        store = LocalArtifactStore(tmp_path)
        record = ArtifactRecord(
            phase_id=PhaseId.EXECUTE,
            name="result_abc",
            payload={"status": "success", "steps": [1, 2]},
            attachments={"step_1_screenshot.png": b"\x89PNG"},
        )

        path = Path(store.save(record))

        assert path.name == "result_abc.json"
        assert path.parent.parent == tmp_path / "execute"
        assert re.fullmatch(r"\d{8}-\d{6}", path.parent.name)
        assert (path.parent / "result_abc" / "step_1_screenshot.png").read_bytes() == b"\x89PNG"
        assert store.load(path) == {"status": "success", "steps": [1, 2]}

    def test_unsafe_names_are_sanitized(self, tmp_path: Path) -> None:
        """Test record names cannot escape the phase directory."""
        store = LocalArtifactStore(tmp_path)
        record = ArtifactRecord(phase_id=PhaseId.EXECUTE, name="../../etc/passwd", payload={})
        path = Path(store.save(record))
        assert path.parent.parent == tmp_path / "execute"
        assert "/" not in path.name

    def test_same_second_records_keep_their_attachments(self, tmp_path: Path) -> None:
        """Test two records with equal attachment names do not overwrite each other."""
        store = LocalArtifactStore(tmp_path)
        paths = [
            Path(
                store.save(
                    ArtifactRecord(
                        phase_id=PhaseId.EXECUTE,
                        name=name,
                        payload={},
                        attachments={"step_1_screenshot.png": content},
                    )
                )
            )
            for name, content in [("result_a", b"first"), ("result_b", b"second")]
        ]
        first, second = (path.with_suffix("") / "step_1_screenshot.png" for path in paths)
        assert first.read_bytes() == b"first"
        assert second.read_bytes() == b"second"

    def test_load_missing_raises(self, tmp_path: Path) -> None:
        """Test loading a missing artifact raises."""
        store = LocalArtifactStore(tmp_path)
        with pytest.raises(FileNotFoundError):
            store.load(tmp_path / "nope.json")

    def test_creates_data_dir(self, tmp_path: Path) -> None:
        """Test the data directory is created on construction."""
        store = LocalArtifactStore(tmp_path / "nested" / "data")
        assert store.data_dir.is_dir()


class TestFakerValueGenerator:
    """Tests for FakerValueGenerator."""

    def test_email(self) -> None:
        """Test emails look like emails."""
        value = FakerValueGenerator(seed=1).generate("internet.email")
        assert re.fullmatch(r"[^@\s]+@[^@\s]+\.[a-z]+", value)

    def test_phone(self) -> None:
        """Test phone numbers have three groups."""
        value = FakerValueGenerator(seed=1).generate("phone")
        assert re.fullmatch(r"\d{3}-\d{3}-\d{4}", value)

    def test_phone_number_path(self) -> None:
        """Test ``phone.number`` is a phone number, not a plain number."""
        value = FakerValueGenerator(seed=1).generate("phone.number")
        assert re.fullmatch(r"\d{3}-\d{3}-\d{4}", value)

    def test_dotted_camel_case_method(self) -> None:
        """Test ``person.firstName`` maps to a first name."""
        value = FakerValueGenerator(seed=1).generate("person.firstName")
        assert " " not in value
        assert value[0].isupper()

    def test_full_name(self) -> None:
        """Test names have a first and last part."""
        assert len(FakerValueGenerator(seed=1).generate("person.fullName").split()) == 2

    def test_number(self) -> None:
        """Test numbers are digits within range."""
        value = FakerValueGenerator(seed=1).generate("number")
        assert value.isdigit()
        assert 1 <= int(value) <= 1000

    def test_password_length(self) -> None:
        """Test passwords are twelve characters."""
        assert len(FakerValueGenerator(seed=1).generate("password")) == 12

    def test_unknown_method_gives_a_word(self) -> None:
        """Test unknown methods still produce a value."""
        value = FakerValueGenerator(seed=1).generate("custom.somethingElse")
        assert value.isalpha()

    def test_seed_is_reproducible(self) -> None:
        """Test the same seed gives the same sequence."""
        first = FakerValueGenerator(seed=7)
        second = FakerValueGenerator(seed=7)
        methods = ["email", "name", "phone", "company"]
        assert [first.generate(m) for m in methods] == [second.generate(m) for m in methods]
