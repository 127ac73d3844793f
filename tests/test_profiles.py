"""Tests for the profile store and its YAML persistence."""

from datetime import UTC, datetime
from pathlib import Path

import pytest
import yaml

from ghswitcher.exceptions import (
    DuplicateIdentityError,
    InvalidFieldError,
    InvalidIdentityError,
    NotFoundError,
    PersistenceError,
    StoreFormatError,
)
from ghswitcher.profiles import ProfileStore


@pytest.fixture
def store(tmp_path: Path) -> ProfileStore:
    """Create a profile store in a temporary config directory."""
    return ProfileStore(tmp_path / "config" / "identities.yaml")


class TestProfileStoreBasics:
    """Test adding, listing and looking up identities."""

    def test_missing_file_is_empty(self, store: ProfileStore) -> None:
        """Test a store with no file lists nothing."""
        assert store.list() == []
        assert not store.path.exists()

    def test_add_returns_position(self, store: ProfileStore) -> None:
        """Test add returns the 1-based index."""
        assert store.add("alice", email="alice@example.com") == 1
        assert store.add("bob") == 2
        assert [i.username for i in store.list()] == ["alice", "bob"]

    def test_add_creates_parent_directory(self, store: ProfileStore) -> None:
        """Test the config directory is created on first write."""
        store.add("alice")
        assert store.path.is_file()

    def test_add_duplicate(self, store: ProfileStore) -> None:
        """Test usernames are unique."""
        store.add("alice")
        with pytest.raises(DuplicateIdentityError, match="already exists"):
            store.add("alice", name="Other")
        assert len(store.list()) == 1

    def test_add_invalid_username(self, store: ProfileStore) -> None:
        """Test invalid usernames are rejected without writing."""
        with pytest.raises(InvalidIdentityError, match="Invalid identity"):
            store.add("bad name")
        assert not store.path.exists()

    def test_add_unknown_field(self, store: ProfileStore) -> None:
        """Test fields outside the editable set are rejected."""
        with pytest.raises(InvalidFieldError, match="token"):
            store.add("alice", token="secret")

    def test_lookup_by_username_and_index(self, store: ProfileStore) -> None:
        """Test refs resolve by name or by 1-based number."""
        store.add("alice")
        store.add("bob")
        assert store.lookup("bob").username == "bob"
        assert store.lookup("1").username == "alice"
        assert store.lookup("2").username == "bob"

    @pytest.mark.parametrize("ref", ["0", "3", "carol"])
    def test_lookup_missing(self, store: ProfileStore, ref: str) -> None:
        """Test out-of-range numbers and unknown names are not found."""
        store.add("alice")
        store.add("bob")
        with pytest.raises(NotFoundError):
            store.lookup(ref)

    def test_index_of(self, store: ProfileStore) -> None:
        """Test index_of matches list order."""
        store.add("alice")
        store.add("bob")
        assert store.index_of("bob") == 2


class TestProfileStoreMutations:
    """Test update, touch and remove."""

    def test_update_field(self, store: ProfileStore) -> None:
        """Test one field changes and is persisted."""
        store.add("alice", email="old@example.com")
        updated = store.update("alice", "email", "new@example.com")
        assert updated.email == "new@example.com"
        assert ProfileStore(store.path).get("alice").email == "new@example.com"

    def test_update_clears_with_empty_string(self, store: ProfileStore) -> None:
        """Test an empty value clears an optional field."""
        store.add("alice", signing_key="ABC123")
        assert store.update("alice", "signing_key", "").signing_key is None

    def test_update_auto_sign_from_string(self, store: ProfileStore) -> None:
        """Test auto_sign accepts CLI style strings."""
        store.add("alice")
        assert store.update("alice", "auto_sign", "true").auto_sign is True

    def test_update_unknown_field(self, store: ProfileStore) -> None:
        """Test only editable fields can change."""
        store.add("alice")
        with pytest.raises(InvalidFieldError, match="Unknown field 'username'"):
            store.update("alice", "username", "mallory")

    def test_update_invalid_value(self, store: ProfileStore) -> None:
        """Test invalid values leave the stored identity untouched."""
        store.add("alice", email="alice@example.com")
        with pytest.raises(InvalidIdentityError, match="email"):
            store.update("alice", "email", "nope")
        assert store.get("alice").email == "alice@example.com"

    def test_update_missing_identity(self, store: ProfileStore) -> None:
        """Test updating an unknown identity fails."""
        with pytest.raises(NotFoundError):
            store.update("ghost", "name", "Ghost")

    def test_touch_records_last_used(self, store: ProfileStore) -> None:
        """Test touch stores the given timestamp."""
        store.add("alice")
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        store.touch("alice", when)
        assert store.get("alice").last_used == when

    def test_remove_shifts_positions(self, store: ProfileStore) -> None:
        """Test later identities move up after a removal."""
        store.add("alice")
        store.add("bob")
        store.add("carol")
        removed = store.remove("bob")
        assert removed.username == "bob"
        assert store.lookup("2").username == "carol"

    def test_remove_missing(self, store: ProfileStore) -> None:
        """Test removing an unknown identity fails."""
        with pytest.raises(NotFoundError, match="not found"):
            store.remove("ghost")


class TestProfileStorePersistence:
    """Test the on-disk format."""

    def test_document_layout(self, store: ProfileStore) -> None:
        """Test the YAML file keeps a version and field names."""
        store.add("alice", name="Alice", ssh_key_path="~/.ssh/id_alice")
        data = yaml.safe_load(store.path.read_text())
        assert data["version"] == 1
        assert data["identities"][0]["username"] == "alice"
        assert data["identities"][0]["ssh_key_path"] == "~/.ssh/id_alice"

    def test_last_used_round_trips(self, store: ProfileStore) -> None:
        """Test timestamps survive a reload."""
        store.add("alice")
        when = datetime(2026, 5, 6, 7, 8, 9, tzinfo=UTC)
        store.touch("alice", when)
        assert ProfileStore(store.path).get("alice").last_used == when

    def test_no_temp_files_left(self, store: ProfileStore) -> None:
        """Test atomic writes clean up after themselves."""
        store.add("alice")
        store.add("bob")
        assert [p.name for p in store.path.parent.iterdir()] == ["identities.yaml"]

    def test_special_characters_preserved(self, store: ProfileStore) -> None:
        """Test names with quotes and unicode are stored verbatim."""
        store.add("alice", name='Alice "Al" Émile')
        assert store.get("alice").name == 'Alice "Al" Émile'

    def test_unparseable_file(self, store: ProfileStore) -> None:
        """Test broken YAML raises a store format error."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("identities: [unclosed\n")
        with pytest.raises(StoreFormatError, match="Failed to parse"):
            store.list()

    def test_schema_violation(self, store: ProfileStore) -> None:
        """Test unknown keys are rejected by the schema."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text(
            yaml.safe_dump({"identities": [{"username": "alice", "token": "x"}]}),
        )
        with pytest.raises(StoreFormatError, match="Invalid store file"):
            store.list()

    def test_blank_file_is_empty(self, store: ProfileStore) -> None:
        """Test an empty file loads as an empty store."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("")
        assert store.list() == []

    def test_unwritable_location(self, tmp_path: Path) -> None:
        """Test a write failure surfaces as a persistence error."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = ProfileStore(blocker / "identities.yaml")
        with pytest.raises(PersistenceError):
            store.add("alice")
