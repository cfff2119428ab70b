"""Tests for the package resolver."""

from __future__ import annotations

from pathlib import Path

import pytest

from typst_embed.errors import PackageResolutionError
from typst_embed.packages.models import PackageOrigin, PackageSpec
from typst_embed.packages.resolver import PackageResolver, ResolutionQueue

from conftest import write_tree

CETZ = PackageSpec("preview", "cetz", "0.3.2")
OXIFMT = PackageSpec("preview", "oxifmt", "0.2.1")


def _manifest(deps: dict[str, str]) -> str:
    lines = ['[package]\nname = "x"\nversion = "1.0.0"\n', "[package.dependencies]"]
    lines.extend(f'{name} = "{value}"' for name, value in deps.items())
    return "\n".join(lines) + "\n"


class TestResolutionQueue:
    """Tests for the BFS queue."""

    def test_fifo_and_visited(self) -> None:
        """Specs come out in insertion order, each only once."""
        a, b = PackageSpec("p", "a", "1"), PackageSpec("p", "b", "1")
        queue = ResolutionQueue([a, b, a])

        assert queue.pop() == a
        assert queue.pop() == b
        assert queue.pop() is None

    def test_mark_visited_reports_new(self) -> None:
        """mark_visited should report whether the package was unseen."""
        queue = ResolutionQueue()
        spec = PackageSpec("p", "a", "1")

        assert queue.mark_visited(spec) is True
        assert queue.mark_visited(spec) is False


class TestPackageResolver:
    """Tests for PackageResolver.resolve."""

    def test_downloads_missing_package(self, tmp_path: Path, registry) -> None:
        """A package absent from the cache is downloaded into it."""
        registry.add("preview", "cetz", "0.3.2", {"lib.typ": "#let a = 1"})
        cache = tmp_path / "cache"

        resolved = PackageResolver(cache, downloader=registry.downloader()).resolve([CETZ])

        assert len(resolved) == 1
        assert resolved[0].origin is PackageOrigin.DOWNLOAD
        assert resolved[0].path == cache / "preview" / "cetz" / "0.3.2"
        assert (resolved[0].path / "lib.typ").exists()

    def test_second_run_uses_cache(self, tmp_path: Path, registry) -> None:
        """Resolving again without refresh performs no network calls."""
        registry.add("preview", "cetz", "0.3.2", {
            "typst.toml": _manifest({"oxifmt": "preview:0.2.1"}),
        })
        registry.add("preview", "oxifmt", "0.2.1", {"lib.typ": ""})
        cache = tmp_path / "cache"

        first = PackageResolver(cache, downloader=registry.downloader()).resolve([CETZ])
        calls_after_first = len(registry.requests)
        second = PackageResolver(cache, downloader=registry.downloader()).resolve([CETZ])

        assert calls_after_first == 2
        assert len(registry.requests) == calls_after_first
        assert {p.spec for p in first} == {p.spec for p in second}
        assert all(p.origin is PackageOrigin.CACHE for p in second)

    def test_refresh_redownloads(self, tmp_path: Path, registry) -> None:
        """refresh=True should bypass the cache."""
        registry.add("preview", "cetz", "0.3.2", {"lib.typ": "new"})
        cache = tmp_path / "cache"
        write_tree(cache, {"preview/cetz/0.3.2/lib.typ": "old"})

        resolved = PackageResolver(cache, refresh=True, downloader=registry.downloader()).resolve([CETZ])

        assert resolved[0].origin is PackageOrigin.DOWNLOAD
        assert (cache / "preview/cetz/0.3.2/lib.typ").read_text() == "new"

    def test_local_dir_takes_priority(self, tmp_path: Path, registry) -> None:
        """A package in the local directory is used without touching cache or network."""
        local = write_tree(tmp_path / "local", {"preview/cetz/0.3.2/lib.typ": "local"})
        cache = write_tree(tmp_path / "cache", {"preview/cetz/0.3.2/lib.typ": "cached"})

        resolved = PackageResolver(cache, local_dir=local, downloader=registry.downloader()).resolve([CETZ])

        assert resolved[0].origin is PackageOrigin.LOCAL
        assert resolved[0].path == local / "preview" / "cetz" / "0.3.2"
        assert registry.requests == []

    def test_local_dir_wins_even_with_refresh(self, tmp_path: Path, registry) -> None:
        """refresh only affects the cache, never the local directory."""
        local = write_tree(tmp_path / "local", {"preview/cetz/0.3.2/lib.typ": "local"})

        resolved = PackageResolver(
            tmp_path / "cache", local_dir=local, refresh=True, downloader=registry.downloader(),
        ).resolve([CETZ])

        assert resolved[0].origin is PackageOrigin.LOCAL
        assert registry.requests == []

    def test_implicit_dependencies_from_sources(self, tmp_path: Path, registry) -> None:
        """Imports in a package's sources are resolved transitively."""
        registry.add("preview", "cetz", "0.3.2", {"src/lib.typ": '#import "@preview/oxifmt:0.2.1": strfmt'})
        registry.add("preview", "oxifmt", "0.2.1", {"lib.typ": ""})

        resolved = PackageResolver(tmp_path / "cache", downloader=registry.downloader()).resolve([CETZ])

        assert {p.spec for p in resolved} == {CETZ, OXIFMT}

    def test_diamond_dependency_resolved_once(self, tmp_path: Path, registry) -> None:
        """Two packages depending on the same third yield it exactly once."""
        registry.add("preview", "a", "1.0.0", {"typst.toml": _manifest({"c": "preview:1.0.0"})})
        registry.add("preview", "b", "1.0.0", {"lib.typ": '#import "@preview/c:1.0.0"'})
        registry.add("preview", "c", "1.0.0", {"lib.typ": ""})

        resolved = PackageResolver(tmp_path / "cache", downloader=registry.downloader()).resolve([
            PackageSpec("preview", "a", "1.0.0"),
            PackageSpec("preview", "b", "1.0.0"),
        ])

        specs = [p.spec for p in resolved]
        assert specs.count(PackageSpec("preview", "c", "1.0.0")) == 1
        assert len(specs) == 3
        assert registry.requests.count("/preview/c-1.0.0.tar.gz") == 1

    def test_self_import_does_not_loop(self, tmp_path: Path, registry) -> None:
        """A package whose examples import itself resolves once."""
        registry.add("preview", "cetz", "0.3.2", {"examples/demo.typ": '#import "@preview/cetz:0.3.2"'})

        resolved = PackageResolver(tmp_path / "cache", downloader=registry.downloader()).resolve([CETZ])

        assert [p.spec for p in resolved] == [CETZ]

    def test_not_found_lists_searched_paths(self, tmp_path: Path, registry) -> None:
        """A non-downloadable package missing everywhere reports every searched path."""
        local = tmp_path / "local"
        local.mkdir()
        cache = tmp_path / "cache"
        missing = PackageSpec("mine", "helper", "0.1.0")

        with pytest.raises(PackageResolutionError) as exc_info:
            PackageResolver(cache, local_dir=local, downloader=registry.downloader()).resolve([missing])

        failure = exc_info.value.failures[0]
        assert failure.spec == missing
        assert failure.searched == [
            local / "mine" / "helper" / "0.1.0",
            cache / "mine" / "helper" / "0.1.0",
        ]
        assert str(local / "mine" / "helper" / "0.1.0") in str(exc_info.value)
        assert registry.requests == []

    def test_partial_failure_still_resolves_others(self, tmp_path: Path, registry) -> None:
        """One failing package must not stop independent ones from resolving."""
        registry.add("preview", "cetz", "0.3.2", {"lib.typ": ""})
        cache = tmp_path / "cache"

        with pytest.raises(PackageResolutionError) as exc_info:
            PackageResolver(cache, downloader=registry.downloader()).resolve([
                PackageSpec("mine", "helper", "0.1.0"),
                CETZ,
            ])

        assert [f.spec for f in exc_info.value.failures] == [PackageSpec("mine", "helper", "0.1.0")]
        assert (cache / "preview" / "cetz" / "0.3.2" / "lib.typ").exists()

    def test_collects_every_failure(self, tmp_path: Path, registry) -> None:
        """All failures are reported together, download and not-found alike."""
        registry.add_raw("preview", "broken", "1.0.0", b"not an archive")

        with pytest.raises(PackageResolutionError) as exc_info:
            PackageResolver(tmp_path / "cache", downloader=registry.downloader()).resolve([
                PackageSpec("preview", "absent", "1.0.0"),
                PackageSpec("preview", "broken", "1.0.0"),
                PackageSpec("mine", "helper", "0.1.0"),
            ])

        failures = exc_info.value.failures
        assert len(failures) == 3
        message = str(exc_info.value)
        assert "Failed to resolve 3 package(s)" in message
        assert "@preview/absent:1.0.0" in message
        assert "@preview/broken:1.0.0" in message
        assert "@mine/helper:0.1.0" in message

    def test_filesystem_error_is_collected(self, tmp_path: Path, registry) -> None:
        """An unusable cache path is reported as a failure and the rest still resolves."""
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "preview").write_text("not a directory")
        local = write_tree(tmp_path / "local", {"mine/ok/1.0.0/lib.typ": ""})
        ok = PackageSpec("mine", "ok", "1.0.0")

        with pytest.raises(PackageResolutionError) as exc_info:
            PackageResolver(cache, local_dir=local, downloader=registry.downloader()).resolve([CETZ, ok])

        failures = exc_info.value.failures
        assert [f.spec for f in failures] == [CETZ]
        assert failures[0].reason.startswith("I/O error")
        assert registry.requests == []
        assert "@preview/cetz:0.3.2" in str(exc_info.value)

    def test_empty_input(self, tmp_path: Path) -> None:
        """Nothing to resolve yields an empty list."""
        assert PackageResolver(tmp_path / "cache").resolve([]) == []
