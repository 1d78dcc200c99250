import gzip
import os
import shutil
import stat

import pytest
from debian.changelog import Changelog
from debian.deb822 import Deb822

from customdeb.modules.customize import STATES, Customizer
from customdeb.modules.errors import ExternalToolError, UsageError, ValidationError
from customdeb.modules.tools import Tools


class FakeTools(Tools):
    """dpkg-deb/apt-get simulados: o "pacote" é um diretório já extraído."""

    def __init__(self, package_dir, fail_on=None):
        super().__init__()
        self.package_dir = str(package_dir)
        self.fail_on = fail_on
        self.calls = []
        self.built_tree = None

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name == self.fail_on:
            raise ExternalToolError([name], 2, "simulated failure")

    def fetch(self, package, cache_dir):
        self._maybe_fail("fetch")
        os.makedirs(cache_dir, exist_ok=True)
        path = os.path.join(cache_dir, f"{package}_2.0_all.deb")
        with open(path, "w"):
            pass
        return path

    def extract(self, archive_path, dest_dir):
        self._maybe_fail("extract")
        shutil.copytree(self.package_dir, dest_dir, symlinks=True,
                        ignore=shutil.ignore_patterns("DEBIAN"))

    def extract_metadata(self, archive_path, dest_subdir):
        self._maybe_fail("extract_metadata")
        shutil.copytree(os.path.join(self.package_dir, "DEBIAN"), dest_subdir)

    def repack(self, tree_dir, output_dir, fallback_name=None):
        self._maybe_fail("repack")
        self.built_tree = os.path.join(output_dir, "built-tree")
        shutil.copytree(tree_dir, self.built_tree, symlinks=True)
        return os.path.join(output_dir, fallback_name)


@pytest.fixture
def package_dir(tmp_path):
    root = tmp_path / "pkg"
    (root / "DEBIAN").mkdir(parents=True)
    (root / "DEBIAN" / "control").write_text(
        "Package: foo\nVersion: 2.0\nArchitecture: all\nDescription: foo\n", encoding="utf-8")
    (root / "etc").mkdir()
    (root / "etc" / "foo.conf").write_text("enabled=false\n")
    return root


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "foo_2.0_all.deb"
    path.write_bytes(b"!<arch>\n")
    return path


def write_directive(tmp_path, text):
    path = tmp_path / "foo.ctrl"
    path.write_text(text, encoding="utf-8")
    return str(path)


def make_customizer(tmp_path, tools):
    return Customizer(
        tools=tools,
        cache_dir=str(tmp_path / "cache"),
        output_dir=str(tmp_path / "out"),
        scratch_dir=str(tmp_path),
        keep_scratch=False,
    )


SCENARIO = """Package: foo
Mod-Version: 1

File: /etc/foo.conf
Content: enabled=true
Permission: 644
"""


def test_end_to_end(tmp_path, package_dir, archive):
    tools = FakeTools(package_dir)
    customizer = make_customizer(tmp_path, tools)
    result = customizer.run(write_directive(tmp_path, SCENARIO), str(archive))

    assert result == os.path.join(str(tmp_path / "out"), "foo_2.0.customdeb1_all.deb")
    assert customizer.state == "Done"
    built = tools.built_tree

    conf = os.path.join(built, "etc", "foo.conf")
    with open(conf) as fh:
        assert fh.read() == "enabled=true\n"
    assert stat.S_IMODE(os.stat(conf).st_mode) == 0o644

    with open(os.path.join(built, "DEBIAN", "control"), encoding="utf-8") as fh:
        assert Deb822(fh)["Version"] == "2.0.customdeb1"

    changelog = os.path.join(built, "usr", "share", "doc", "foo", "changelog.Debian.gz")
    with gzip.open(changelog, "rt", encoding="utf-8") as fh:
        assert str(list(Changelog(fh.read()))[0].version) == "2.0.customdeb1"

    with open(os.path.join(built, "DEBIAN", "md5sums")) as fh:
        md5sums = fh.read()
    assert "  etc/foo.conf\n" in md5sums

    # o pacote original e a árvore de origem não mudam
    assert (package_dir / "etc" / "foo.conf").read_text() == "enabled=false\n"
    assert archive.read_bytes() == b"!<arch>\n"


def test_scratch_directory_is_removed(tmp_path, package_dir, archive):
    customizer = make_customizer(tmp_path, FakeTools(package_dir))
    customizer.run(write_directive(tmp_path, SCENARIO), str(archive))
    assert not [d for d in os.listdir(str(tmp_path)) if d.startswith("customdeb-work-")]


def test_package_name_mismatch_aborts_before_mutation(tmp_path, package_dir, archive):
    tools = FakeTools(package_dir)
    customizer = make_customizer(tmp_path, tools)
    directive = write_directive(tmp_path, "Package: bar\n\nFile: /etc/foo.conf\nContent: x\n")
    with pytest.raises(ValidationError):
        customizer.run(directive, str(archive))
    assert customizer.state == "MetadataRead"
    assert "repack" not in tools.calls


def test_files_overlay_is_copied_before_operations(tmp_path, package_dir, archive):
    overlay = tmp_path / "overlay"
    (overlay / "usr" / "share" / "foo").mkdir(parents=True)
    (overlay / "usr" / "share" / "foo" / "extra.txt").write_text("extra\n")
    (overlay / "etc").mkdir()
    (overlay / "etc" / "foo.conf").write_text("from overlay\n")
    directive = write_directive(
        tmp_path,
        "Package: foo\nFiles: overlay\n\nFile: /usr/share/foo/extra.txt\nPermission: 600\n",
    )
    tools = FakeTools(package_dir)
    make_customizer(tmp_path, tools).run(directive, str(archive))

    extra = os.path.join(tools.built_tree, "usr", "share", "foo", "extra.txt")
    assert open(extra).read() == "extra\n"
    assert stat.S_IMODE(os.stat(extra).st_mode) == 0o600
    assert open(os.path.join(tools.built_tree, "etc", "foo.conf")).read() == "from overlay\n"


def test_missing_files_dir_fails(tmp_path, package_dir, archive):
    directive = write_directive(tmp_path, "Package: foo\nFiles: nowhere\n")
    with pytest.raises(UsageError):
        make_customizer(tmp_path, FakeTools(package_dir)).run(directive, str(archive))


def test_archive_is_fetched_when_not_given(tmp_path, package_dir):
    tools = FakeTools(package_dir)
    make_customizer(tmp_path, tools).run(write_directive(tmp_path, SCENARIO))
    assert tools.calls[0] == "fetch"
    assert (tmp_path / "cache" / "foo_2.0_all.deb").exists()


def test_missing_archive_is_usage_error(tmp_path, package_dir):
    customizer = make_customizer(tmp_path, FakeTools(package_dir))
    with pytest.raises(UsageError):
        customizer.run(write_directive(tmp_path, SCENARIO), str(tmp_path / "nope.deb"))


def test_external_tool_failure_aborts(tmp_path, package_dir, archive):
    tools = FakeTools(package_dir, fail_on="repack")
    customizer = make_customizer(tmp_path, tools)
    with pytest.raises(ExternalToolError):
        customizer.run(write_directive(tmp_path, SCENARIO), str(archive))
    assert customizer.state == "MetadataReconciled"
    assert not [d for d in os.listdir(str(tmp_path)) if d.startswith("customdeb-work-")]


def test_invalid_directive_fails_before_acquisition(tmp_path, package_dir, archive):
    tools = FakeTools(package_dir)
    directive = write_directive(tmp_path, "Package: foo\n\nFile: /etc/x\nColor: red\n")
    with pytest.raises(ValidationError):
        make_customizer(tmp_path, tools).run(directive, str(archive))
    assert tools.calls == []


def test_states_only_move_forward(tmp_path, package_dir):
    customizer = make_customizer(tmp_path, FakeTools(package_dir))
    customizer._advance("DirectiveLoaded")
    with pytest.raises(RuntimeError):
        customizer._advance("Start")
    assert STATES[0] == "Start" and STATES[-1] == "Done"


def test_files_overlay_does_not_follow_symlinks(tmp_path, package_dir, archive):
    host = tmp_path / "host.conf"
    host.write_text("host\n")
    os.symlink(str(host), str(package_dir / "etc" / "link.conf"))
    overlay = tmp_path / "overlay"
    (overlay / "etc").mkdir(parents=True)
    (overlay / "etc" / "link.conf").write_text("from overlay\n")
    directive = write_directive(tmp_path, "Package: foo\nFiles: overlay\n")

    tools = FakeTools(package_dir)
    make_customizer(tmp_path, tools).run(directive, str(archive))

    assert host.read_text() == "host\n"
    built = os.path.join(tools.built_tree, "etc", "link.conf")
    assert not os.path.islink(built)
    assert open(built).read() == "from overlay\n"


def test_changelog_symlink_out_of_tree_aborts(tmp_path, package_dir, archive):
    host = tmp_path / "host-changelog.gz"
    host.write_bytes(b"host")
    doc = package_dir / "usr" / "share" / "doc" / "foo"
    doc.mkdir(parents=True)
    os.symlink(str(host), str(doc / "changelog.Debian.gz"))

    tools = FakeTools(package_dir)
    with pytest.raises(ValidationError):
        make_customizer(tmp_path, tools).run(write_directive(tmp_path, SCENARIO), str(archive))
    assert host.read_bytes() == b"host"
    assert "repack" not in tools.calls
