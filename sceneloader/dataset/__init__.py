from .base_data import DATA_SET_REGISTRY, BaseDataset
from .colmap_data import ColmapDataset
from .utils.dataprior import CameraPrior, CamerasPrior, PointsPrior


def parse_data_set(cfg: dict):
    """
    Parse the data set.

    Parameters
    ----------
    cfg : dict
        The dataset configuration, with `data_set` naming a class in
        DATA_SET_REGISTRY.

    Returns
    -------
    dataset : type | None
        The registered dataset class, or None for an empty config.
    """
    if len(cfg) == 0:
        return None
    data_set = cfg.data_set if hasattr(cfg, "data_set") else cfg["data_set"]
    dataset = DATA_SET_REGISTRY.get(data_set)

    return dataset
