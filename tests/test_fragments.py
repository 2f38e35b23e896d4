"""Tests for fragment models, discovery and load ordering."""

import pytest

from conftest import write_fragment
from profilekit.fragments import (
    Fragment,
    FragmentDependencyError,
    FragmentError,
    FragmentLoader,
    FragmentTier,
    WrapperCommand,
    load_fragment,
    new_fragment,
    render_fragment_template,
)
from profilekit.tools import ToolCategory


BUILTIN_ORDER = [
    "core",
    "search",
    "containers",
    "node",
    "python",
    "cloud",
    "conversion",
    "kubernetes",
    "security",
]


def fragment(name, tier="standard", depends_on=None, enabled=True):
    return Fragment(
        name=name,
        tier=FragmentTier(tier),
        depends_on=depends_on or [],
        enabled=enabled,
    )


class TestFragmentTier:
    """Tests for tier ordering."""

    def test_rank_order(self):
        """Tiers rank core first, optional last."""
        ranks = [t.rank for t in (
            FragmentTier.CORE,
            FragmentTier.ESSENTIAL,
            FragmentTier.STANDARD,
            FragmentTier.OPTIONAL,
        )]
        assert ranks == sorted(ranks)
        assert FragmentTier.CORE.rank == 0


class TestWrapperCommand:
    """Tests for wrapper command expansion and parsing."""

    def test_expand_placeholder(self):
        """User arguments replace the placeholder."""
        command = WrapperCommand(name="dcu", tool="docker", template=["docker", "compose", "up", "{args}", "-d"])
        assert command.expand(["web", "db"]) == ["docker", "compose", "up", "web", "db", "-d"]

    def test_expand_without_placeholder_appends(self):
        """Without a placeholder arguments are appended."""
        command = WrapperCommand(name="dps", tool="docker", template=["docker", "ps"])
        assert command.expand(["-a"]) == ["docker", "ps", "-a"]

    def test_expand_without_args(self):
        """The placeholder vanishes when no arguments are given."""
        command = WrapperCommand(name="gd", tool="git", template=["git", "diff", "{args}"])
        assert command.expand() == ["git", "diff"]

    def test_expand_does_not_mutate_template(self):
        """Expansion leaves the template intact."""
        command = WrapperCommand(name="dps", tool="docker", template=["docker", "ps"])
        command.expand(["-a"])
        assert command.template == ["docker", "ps"]

    def test_from_dict_string_template(self):
        """String templates are split shell-style and the tool is inferred."""
        command = WrapperCommand.from_dict(
            {"name": "tfp", "template": "terraform plan '{args}'", "aliases": "tf-plan"},
            fragment="cloud",
        )
        assert command.template == ["terraform", "plan", "{args}"]
        assert command.tool == "terraform"
        assert command.aliases == ["tf-plan"]
        assert command.fragment == "cloud"

    def test_from_dict_requires_name(self):
        """Commands need a name."""
        with pytest.raises(FragmentError):
            WrapperCommand.from_dict({"template": ["git"]})

    def test_from_dict_requires_template(self):
        """Commands need a template."""
        with pytest.raises(FragmentError):
            WrapperCommand.from_dict({"name": "x"})


class TestFragment:
    """Tests for fragment documents."""

    def test_from_dict(self):
        """A full document is parsed."""
        frag = Fragment.from_dict({
            "name": "conversion",
            "description": "Converters",
            "tier": "optional",
            "depends_on": "core",
            "tools": [{"name": "libreoffice", "command": "soffice", "category": "conversion"}],
            "commands": [
                {"name": "to-pdf", "tool": "libreoffice", "template": ["soffice", "{args}"], "aliases": ["pdf"]},
            ],
        })
        assert frag.tier == FragmentTier.OPTIONAL
        assert frag.depends_on == ["core"]
        assert frag.tools[0].category == ToolCategory.CONVERSION
        assert frag.commands[0].fragment == "conversion"
        assert frag.alias_count == 1

    def test_name_defaults_to_file_stem(self, tmp_path):
        """A nameless document takes its file name."""
        frag = Fragment.from_dict({"commands": []}, source=tmp_path / "extras.yaml")
        assert frag.name == "extras"

    def test_invalid_tier(self):
        """Unknown tiers are rejected."""
        with pytest.raises(FragmentError, match="tier"):
            Fragment.from_dict({"name": "x", "tier": "urgent"})

    def test_invalid_tool_entry(self):
        """Invalid tool entries are reported as fragment errors."""
        with pytest.raises(FragmentError):
            Fragment.from_dict({"name": "x", "tools": [{"name": "t", "category": "nope"}]})

    def test_not_a_mapping(self):
        """Documents must be mappings."""
        with pytest.raises(FragmentError):
            Fragment.from_dict(["a", "b"])

    def test_to_dict(self):
        """Fragments convert to dictionary."""
        data = fragment("core", tier="core").to_dict()
        assert data["name"] == "core"
        assert data["tier"] == "core"
        assert data["source"] is None


class TestLoadFragment:
    """Tests for reading fragment files."""

    def test_load_fragment(self, tmp_path):
        """A YAML file is parsed into a fragment."""
        path = write_fragment(tmp_path, "git.yaml", {
            "name": "git",
            "commands": [{"name": "gs", "template": ["git", "status"]}],
        })
        frag = load_fragment(path)
        assert frag.name == "git"
        assert frag.source == path
        assert frag.commands[0].tool == "git"

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML raises a fragment error naming the file."""
        path = tmp_path / "broken.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(FragmentError, match="broken.yaml"):
            load_fragment(path)

    def test_empty_file(self, tmp_path):
        """An empty file is a fragment without commands."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        frag = load_fragment(path)
        assert frag.name == "empty"
        assert frag.commands == []

    def test_empty_list_keys(self, tmp_path):
        """Keys left empty in YAML mean no dependencies and no aliases."""
        path = tmp_path / "bare.yaml"
        path.write_text(
            "name: bare\n"
            "depends_on:\n"
            "commands:\n"
            "  - name: gs\n"
            "    template: [git, status]\n"
            "    aliases:\n"
        )
        frag = load_fragment(path)
        assert frag.depends_on == []
        assert frag.commands[0].aliases == []

    def test_depends_on_must_be_names(self, tmp_path):
        """A mapping under depends_on is a fragment error naming the file."""
        path = tmp_path / "odd.yaml"
        path.write_text("name: odd\ndepends_on:\n  core: true\n")
        with pytest.raises(FragmentError, match="odd.yaml.*depends_on"):
            load_fragment(path)

    def test_aliases_must_be_names(self):
        """A mapping under aliases is reported as a fragment error."""
        with pytest.raises(FragmentError, match="aliases"):
            Fragment.from_dict({
                "name": "x",
                "commands": [{"name": "gs", "template": "git status", "aliases": {"a": 1}}],
            })


class TestFragmentLoader:
    """Tests for discovery and dependency ordering."""

    def test_builtin_fragments_load_in_order(self, config):
        """Bundled fragments load dependencies first, then by tier and name."""
        names = [f.name for f in FragmentLoader(config).load()]
        assert names == BUILTIN_ORDER

    def test_builtin_can_be_switched_off(self, user_config):
        """Only user fragments load when bundled ones are off."""
        assert FragmentLoader(user_config).load() == []

    def test_resolve_order_by_tier_then_name(self, user_config):
        """Independent fragments order by tier, then name."""
        loader = FragmentLoader(user_config)
        ordered = loader.resolve_order([
            fragment("zeta", "optional"),
            fragment("beta", "standard"),
            fragment("alpha", "standard"),
            fragment("base", "core"),
        ])
        assert [f.name for f in ordered] == ["base", "alpha", "beta", "zeta"]

    def test_dependencies_load_first(self, user_config):
        """A dependency loads before its dependent regardless of tier."""
        loader = FragmentLoader(user_config)
        ordered = loader.resolve_order([
            fragment("app", "core", depends_on=["lib"]),
            fragment("lib", "optional"),
        ])
        assert [f.name for f in ordered] == ["lib", "app"]

    def test_missing_dependency(self, user_config):
        """Depending on an unknown fragment raises."""
        loader = FragmentLoader(user_config)
        with pytest.raises(FragmentDependencyError, match="unknown fragment 'ghost'") as exc:
            loader.resolve_order([fragment("app", depends_on=["ghost"])])
        assert exc.value.fragments == ["app"]

    def test_dependency_cycle(self, user_config):
        """Cycles raise and name the fragments involved."""
        loader = FragmentLoader(user_config)
        with pytest.raises(FragmentDependencyError, match="cycle") as exc:
            loader.resolve_order([
                fragment("a", depends_on=["b"]),
                fragment("b", depends_on=["a"]),
                fragment("c"),
            ])
        assert exc.value.fragments == ["a", "b"]

    def test_disabled_fragments_dropped_transitively(self, user_config):
        """Dependents of a disabled fragment are dropped too."""
        user_config.disabled_fragments = ["containers"]
        loader = FragmentLoader(user_config)
        ordered = loader.resolve_order([
            fragment("core", "core"),
            fragment("containers", depends_on=["core"]),
            fragment("kubernetes", depends_on=["containers"]),
            fragment("helm", depends_on=["kubernetes"]),
            fragment("node", depends_on=["core"]),
        ])
        assert [f.name for f in ordered] == ["core", "node"]

    def test_fragment_disabled_in_document(self, user_config):
        """``enabled: false`` in a fragment drops it."""
        loader = FragmentLoader(user_config)
        ordered = loader.resolve_order([fragment("a"), fragment("b", enabled=False)])
        assert [f.name for f in ordered] == ["a"]

    def test_disabled_builtin(self, config):
        """Disabling a bundled fragment drops its dependents."""
        config.disabled_fragments = ["containers"]
        names = [f.name for f in FragmentLoader(config).load()]
        assert "containers" not in names
        assert "kubernetes" not in names
        assert "security" not in names
        assert "core" in names

    def test_user_fragment_overrides_bundled(self, tmp_path, config):
        """A user fragment replaces the bundled one of the same name."""
        bundled = tmp_path / "bundled"
        write_fragment(bundled, "core.yaml", {
            "name": "core",
            "tier": "core",
            "commands": [{"name": "gs", "template": ["git", "status"]}],
        })
        write_fragment(config.fragments_dir, "my-core.yaml", {
            "name": "core",
            "tier": "core",
            "commands": [{"name": "gst", "template": ["git", "status", "-sb"]}],
        })

        fragments = FragmentLoader(config, builtin_dir=bundled).load()
        assert len(fragments) == 1
        assert [c.name for c in fragments[0].commands] == ["gst"]

    def test_discover_ignores_other_files(self, user_config):
        """Only YAML files are read."""
        write_fragment(user_config.fragments_dir, "a.yml", {"name": "a"})
        (user_config.fragments_dir / "notes.txt").write_text("not a fragment")
        assert [f.name for f in FragmentLoader(user_config).discover()] == ["a"]

    def test_missing_user_directory(self, config):
        """A missing user directory contributes nothing."""
        assert not config.fragments_dir.exists()
        assert len(FragmentLoader(config).load()) == len(BUILTIN_ORDER)


class TestScaffold:
    """Tests for creating new fragment files."""

    def test_new_fragment_loads(self, tmp_path):
        """A new fragment file parses like any other fragment."""
        path = new_fragment(
            tmp_path / "fragments",
            "rust",
            description="Rust: cargo helpers",
            tier=FragmentTier.OPTIONAL,
            tool="cargo",
        )

        assert path == tmp_path / "fragments" / "rust.yaml"
        frag = load_fragment(path)
        assert frag.name == "rust"
        assert frag.description == "Rust: cargo helpers"
        assert frag.tier == FragmentTier.OPTIONAL
        assert frag.depends_on == ["core"]
        assert frag.commands[0].name == "rust-example"
        assert frag.commands[0].template == ["cargo", "--version", "{args}"]

    def test_explicit_dependencies(self):
        """An empty dependency list is kept empty."""
        text = render_fragment_template("standalone", depends_on=[])
        assert "depends_on: []" in text

    def test_joins_user_fragments(self, user_config):
        """A new fragment is discovered by the loader."""
        new_fragment(user_config.fragments_dir, "extras", depends_on=[])
        assert [f.name for f in FragmentLoader(user_config).load()] == ["extras"]

    def test_refuses_to_overwrite(self, tmp_path):
        """Existing files are kept unless forced."""
        path = new_fragment(tmp_path, "mine")
        path.write_text("name: mine\n")

        with pytest.raises(FragmentError, match="already exists"):
            new_fragment(tmp_path, "mine")
        assert path.read_text() == "name: mine\n"

        new_fragment(tmp_path, "mine", force=True)
        assert "mine-example" in path.read_text()

    @pytest.mark.parametrize("name", ["", "Upper", "9lives", "../escape", "has space"])
    def test_invalid_names(self, tmp_path, name):
        """Names must be lowercase identifiers."""
        with pytest.raises(FragmentError, match="invalid fragment name"):
            new_fragment(tmp_path, name)
        assert list(tmp_path.iterdir()) == []
