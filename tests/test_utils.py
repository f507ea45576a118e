"""Tests for the registry and configuration helpers."""

from dataclasses import dataclass

import pytest
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import ConfigAttributeError, ConfigKeyError

from sceneloader.utils import Registry, load_config, parse_structured
from sceneloader.utils.config import config_to_primitive, dump_config


class TestRegistry:
    """Test registration and lookup."""

    def test_decorator(self):
        registry = Registry("TEST")

        @registry.register()
        class Foo:
            pass

        assert registry.get("Foo") is Foo
        assert "Foo" in registry
        assert len(registry) == 1

    def test_direct_with_name(self):
        registry = Registry("TEST")

        def bar():
            return 1

        registry.register(bar, name="baz")
        assert registry.get("baz") is bar
        assert dict(registry) == {"baz": bar}

    def test_duplicate(self):
        registry = Registry("TEST")
        registry.register(len, name="size")
        with pytest.raises(KeyError):
            registry.register(len, name="size")

    def test_missing(self):
        with pytest.raises(KeyError):
            Registry("TEST").get("nope")

    def test_lazy_modules(self):
        """Test that listed modules are imported on the first lookup."""
        registry = Registry("TEST", modules=["sceneloader.dataset"])
        from sceneloader.dataset import DATA_SET_REGISTRY
        assert "ColmapDataset" in DATA_SET_REGISTRY
        assert "ColmapDataset" not in registry


class TestConfig:
    """Test OmegaConf helpers."""

    def test_load_from_string(self):
        cfg = load_config(
            "dataset:\n  data_set: ColmapDataset\n  scale: 1.0\nname: ${dataset.data_set}",
            from_string=True,
            cli_args=["dataset.scale=0.5"],
            seed=3,
        )
        assert isinstance(cfg, DictConfig)
        assert cfg.dataset.scale == 0.5
        assert cfg.name == "ColmapDataset"
        assert cfg.seed == 3

    def test_load_from_files(self, temp_dir):
        base = temp_dir / "base.yaml"
        base.write_text("a: 1\nb:\n  c: 2\n")
        override = temp_dir / "override.yaml"
        override.write_text("b:\n  c: 5\n")
        cfg = load_config(str(base), str(override))
        assert config_to_primitive(cfg) == {"a": 1, "b": {"c": 5}}

    def test_dump(self, temp_dir):
        path = temp_dir / "dump.yaml"
        dump_config(str(path), OmegaConf.create({"x": 1}))
        assert OmegaConf.load(path).x == 1

    def test_parse_structured(self):
        @dataclass
        class Config:
            scale: float = 1.0
            name: str = "a"

        cfg = parse_structured(Config, {"scale": 2.0})
        assert cfg.scale == 2.0
        assert cfg.name == "a"
        assert parse_structured(Config).scale == 1.0
        with pytest.raises(TypeError):
            parse_structured(Config, {"unknown": 1})
        with pytest.raises((ConfigAttributeError, ConfigKeyError)):
            cfg.unknown = 1
