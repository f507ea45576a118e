import numpy as np
from pathlib import Path
from abc import abstractmethod
from torch.utils.data import Dataset
from dataclasses import dataclass, field
from typing import Tuple, Any, Dict, List, Optional

from ..utils.registry import Registry
from ..utils.config import parse_structured
from .utils.dataprior import CamerasPrior, CameraPrior, PointsPrior

DATA_SET_REGISTRY = Registry("DATA_SET", modules=["sceneloader.dataset"])
DATA_SET_REGISTRY.__doc__ = ""


@DATA_SET_REGISTRY.register()
class BaseDataset(Dataset):
    """
    Basic dataset: the cameras of one split, their observed data and the
    sparse point cloud of the scene.
    """
    @dataclass
    class Config:
        """
        Parameters
        ----------
        data_path: str
            The path to the data
        data_set: str
            The dataset used in the pipeline, indexed in DATA_SET_REGISTRY
        observed_data_dirs_dict: Dict[str, str]
            The observed data directories, e.g., {"image": "images"}, which means the variable image is stored in "images" directory
        white_bg: bool
            Whether the background is white
        scale: float
            The image scale of the dataset
        splithold: int
            Every `splithold`-th view, in file name order, goes to the val split
        device: str
            The device used in the pipeline
        """
        data_path: str = "data"
        data_set: str = "BaseDataset"
        observed_data_dirs_dict: Dict[str, str] = field(default_factory=lambda: dict({"image": "images"}))
        white_bg: bool = False
        scale: float = 1.0
        splithold: int = 8
        device: str = "cpu"

    def __init__(self, cfg: Optional[Config], split: str) -> None:
        if split not in ("train", "val"):
            raise ValueError(f"Unknown split {split!r}, expected 'train' or 'val'")
        self.cfg = parse_structured(self.Config, cfg)
        self.data_root = Path(self.cfg.data_path)
        self.split = split
        self.scale = self.cfg.scale
        self.observed_data_dirs_dict = self.cfg.observed_data_dirs_dict
        self.device = self.cfg.device
        self.background_color = np.array([1., 1., 1.] if self.cfg.white_bg else [0., 0., 0.])

        self.camera_list, self.observed_data, self.pointcloud = self.load_data_list(split)

        self.cameras = CamerasPrior(self.camera_list)
        self.radius = self.cameras.radius.detach().cpu().numpy() * 1.1
        self.observed_data = self.transform_observed_data(self.observed_data, split)

        self.frame_idx_list = np.arange(len(self.camera_list))

    def load_data_list(self, split: str) -> Tuple[List[CameraPrior], List[Dict[str, Any]], Optional[PointsPrior]]:
        """
        The foundational function for formating the data

        Parameters
        ----------
        split: The split of the data.

        Returns
        -------
        camera: List[CameraPrior]
            The list of cameras prior
        observed_data: List[Dict[str, Any]]
            The observed data of each camera
        pointcloud: PointsPrior
            The pointcloud for the gaussian model.
        """
        camera = self.load_camera_prior(split=split)
        # observed data is matched against the cameras of the split
        self.camera_list = camera
        observed_data = self.load_observed_data(split=split)
        pointcloud = self.load_pointcloud_prior()
        return camera, observed_data, pointcloud

    def split_indices(self, count: int, split: str) -> List[int]:
        """
        Indices of `split` among `count` views sorted by file name.
        """
        hold = self.cfg.splithold
        if split == "train":
            return [i for i in range(count) if i % hold != 0]
        return [i for i in range(count) if i % hold == 0]

    @abstractmethod
    def load_camera_prior(self, split: str) -> List[CameraPrior]:
        """
        The function for loading the camera typically requires user customization.

        Parameters
        ----------
        split: The split of the data.
        """
        raise NotImplementedError

    def load_pointcloud_prior(self) -> Optional[PointsPrior]:
        """
        The function for loading the Pointcloud for initialization of gaussian model.
        """
        return None

    @abstractmethod
    def load_observed_data(self, split: str) -> List[Dict[str, Any]]:
        """
        The function for loading the observed_data, such as image, depth, normal, etc.

        Parameters
        ----------
        split: The split of the data

        Returns
        -------
        observed_data: List[Dict[str, Any]]
            The observed data, index-aligned with the cameras.
        """
        raise NotImplementedError

    @abstractmethod
    def transform_observed_data(self, observed_data: List[Dict[str, Any]], split: str) -> List[Dict[str, Any]]:
        """
        The function for transforming the observed_data into tensors.

        Parameters
        ----------
        observed_data: List[Dict[str, Any]]
            The observed_data for the dataset.

        Returns
        -------
        observed_data: List[Dict[str, Any]]
            The transformed observed_data.
        """
        raise NotImplementedError

    def __len__(self):
        return len(self.camera_list)

    def __getitem__(self, idx):
        camera = self.camera_list[idx]
        observed_data = {key: value.to(self.device) for key, value in self.observed_data[idx].items()}
        frame_idx = self.frame_idx_list[idx]
        return {
            **observed_data,
            "camera": camera,
            "frame_idx": frame_idx,
            "camera_idx": int(camera.idx),
            "height": int(camera.image_height),
            "width": int(camera.image_width)
        }
