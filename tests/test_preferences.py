"""Tests for live preference stores."""
import plistlib
import stat
import textwrap

import pytest

from prefsync.errors import PreferenceIOError
from prefsync.preferences import DefaultsStore, InMemoryPreferenceStore, create_store
from prefsync.preferences.defaults import plist_fragment, write_arguments


class TestInMemoryStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_read_write_delete(self):
        """Basic read, write and delete."""
        store = InMemoryPreferenceStore({"com.apple.dock": {"tilesize": 36}})

        assert await store.read("com.apple.dock", "tilesize") == 36
        assert await store.read("com.apple.dock", "missing") is None
        assert await store.read("com.apple.nothing", "x") is None

        await store.write("com.apple.dock", "tilesize", 50)
        await store.write("com.apple.new", "flag", True)
        assert store.dump() == {
            "com.apple.dock": {"tilesize": 50},
            "com.apple.new": {"flag": True},
        }

        await store.delete("com.apple.dock", "tilesize")
        assert await store.read("com.apple.dock", "tilesize") is None

    @pytest.mark.asyncio
    async def test_delete_missing(self):
        """Deleting an absent key fails."""
        store = InMemoryPreferenceStore()
        with pytest.raises(PreferenceIOError):
            await store.delete("com.apple.dock", "tilesize")

    @pytest.mark.asyncio
    async def test_reads_are_copies(self):
        """Mutating a read value does not change the store."""
        store = InMemoryPreferenceStore({"d": {"k": [1, 2]}})
        value = await store.read("d", "k")
        value.append(3)
        assert await store.read("d", "k") == [1, 2]

    @pytest.mark.asyncio
    async def test_global_domain_not_listed(self):
        """NSGlobalDomain is not listed as a domain."""
        store = InMemoryPreferenceStore({"NSGlobalDomain": {}, "com.apple.dock": {}})
        assert await store.list_domains() == {"com.apple.dock"}


class TestWriteArguments:
    """Tests for `defaults write` argument rendering."""

    @pytest.mark.parametrize("value,expected", [
        (True, ["-bool", "true"]),
        (False, ["-bool", "false"]),
        (36, ["-int", "36"]),
        (0.5, ["-float", "0.5"]),
        ("left", ["-string", "left"]),
    ])
    def test_scalars(self, value, expected):
        """Scalars get a type flag."""
        assert write_arguments(value) == expected

    def test_containers_become_fragments(self):
        """Containers are passed as plist fragments."""
        assert write_arguments([1, "a"]) == [plist_fragment([1, "a"])]

    def test_fragment(self):
        """Fragments are bare plist elements."""
        fragment = plist_fragment({"Preview": False})
        assert fragment.startswith("<dict>")
        assert "<key>Preview</key>" in fragment
        assert "<false/>" in fragment
        assert "plist" not in fragment


class TestCreateStore:
    """Tests for the store factory."""

    def test_known_types(self):
        """Registered store types are created case-insensitively."""
        assert isinstance(create_store("memory"), InMemoryPreferenceStore)
        assert isinstance(create_store("DEFAULTS"), DefaultsStore)

    def test_unknown_type(self):
        """Unknown store types raise ValueError."""
        with pytest.raises(ValueError):
            create_store("registry")


class TestDefaultsStore:
    """Tests for the `defaults` backend against a stand-in executable."""

    @pytest.fixture
    def fake_defaults(self, tmp_path):
        """A `defaults` replacement that logs its arguments."""
        export = tmp_path / "dock.plist"
        export.write_bytes(plistlib.dumps({"tilesize": 36, "autohide": False}))
        calls = tmp_path / "calls"

        script = tmp_path / "defaults"
        script.write_text(textwrap.dedent(f"""\
            #!/bin/sh
            echo "$@" >> {calls}
            case "$1" in
                export)
                    if [ "$2" = "com.apple.dock" ]; then cat {export}; exit 0; fi
                    echo "Domain $2 does not exist" >&2; exit 1 ;;
                domains)
                    printf "com.apple.dock, com.apple.finder, NSGlobalDomain\\n" ;;
                write)
                    exit 0 ;;
                delete)
                    echo "Domain ($2) not found." >&2; exit 1 ;;
            esac
        """))
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        return DefaultsStore(binary=str(script)), calls

    @pytest.mark.asyncio
    async def test_read(self, fake_defaults):
        """Reads pick keys out of the exported domain."""
        store, _ = fake_defaults
        assert await store.read("com.apple.dock", "tilesize") == 36
        assert await store.read("com.apple.dock", "autohide") is False
        assert await store.read("com.apple.dock", "missing") is None
        assert await store.read("com.apple.nothing", "tilesize") is None

    @pytest.mark.asyncio
    async def test_list_domains(self, fake_defaults):
        """Domain listing drops NSGlobalDomain."""
        store, _ = fake_defaults
        assert await store.list_domains() == {"com.apple.dock", "com.apple.finder"}

    @pytest.mark.asyncio
    async def test_write_arguments_passed(self, fake_defaults):
        """Writes pass the typed arguments to defaults."""
        store, calls = fake_defaults

        await store.write("com.apple.dock", "tilesize", 50)

        assert calls.read_text().splitlines()[-1] == "write com.apple.dock tilesize -int 50"

    @pytest.mark.asyncio
    async def test_delete_failure(self, fake_defaults):
        """A failed delete raises PreferenceIOError."""
        store, _ = fake_defaults
        with pytest.raises(PreferenceIOError) as exc_info:
            await store.delete("com.apple.dock", "tilesize")
        assert "not found" in str(exc_info.value)
