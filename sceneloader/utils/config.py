from omegaconf import OmegaConf

# Basic types
from typing import Any, List, Optional, Union

from omegaconf import DictConfig


def load_config(*yamls: str, cli_args: List[str] = [], from_string=False, **kwargs) -> DictConfig:
    """
    Merge YAML documents, CLI dotlist overrides and keyword overrides.

    Parameters
    ----------
    yamls: str
        Paths of YAML files, or YAML documents when `from_string` is set.
    cli_args: List[str]
        Overrides such as ``["dataset.scale=0.5"]``.
    from_string: bool
        Whether `yamls` are documents rather than paths.
    kwargs:
        Top-level overrides, applied last.

    Returns
    -------
    cfg: DictConfig
        The merged config with interpolations resolved.

    Examples
    --------
    >>> cfg = load_config("dataset:\n  data_set: ColmapDataset", from_string=True,
    ...                   cli_args=["dataset.data_path=garden"])
    """
    if from_string:
        yaml_confs = [OmegaConf.create(s) for s in yamls]
    else:
        yaml_confs = [OmegaConf.load(f) for f in yamls]
    cli_conf = OmegaConf.from_cli(cli_args)
    cfg = OmegaConf.merge(*yaml_confs, cli_conf, kwargs)
    OmegaConf.resolve(cfg)
    if not isinstance(cfg, DictConfig):
        raise TypeError(f"Expected a mapping at the top level of the config, got {type(cfg)}")
    return cfg


def config_to_primitive(config, resolve: bool = True) -> Any:
    return OmegaConf.to_container(config, resolve=resolve)


def dump_config(path: str, config) -> None:
    with open(path, "w") as fp:
        OmegaConf.save(config=config, f=fp)


def parse_structured(
    fields: Any,
    cfg: Optional[Union[dict, DictConfig]] = None
) -> Any:
    """
    Validate `cfg` against the dataclass `fields` and return a structured config.
    """
    if cfg is None:
        cfg = {}
    scfg = OmegaConf.structured(fields(**cfg))
    return scfg
