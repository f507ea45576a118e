import torch
import numpy as np
from pathlib import Path
from PIL import Image
from typing import Any, Dict, List, Optional

from .utils.dataprior import CameraPrior, PointsPrior
from ..dataset.base_data import DATA_SET_REGISTRY, BaseDataset
from ..exceptions import UnknownCameraIdError, UnknownImageFileNameError
from ..logger.writer import Logger, ProgressLogger
from ..colmap import read_cameras_binary, read_images_binary, read_3D_points_binary
from ..image import decode_image
from ..source.file import open_files
from ..utils.pose import unitquat_to_rotmat

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg"}


@DATA_SET_REGISTRY.register()
class ColmapDataset(BaseDataset):
    """
    The dataset class for the Colmap based dataset.

    Expects ``sparse/0/{cameras,images}.bin`` under `data_path`, the images
    named by the image records in ``images/``, and optionally
    ``sparse/0/points3D.ply`` or ``sparse/0/points3D.bin``.
    """
    @property
    def sparse_dir(self) -> Path:
        return self.data_root / "sparse" / "0"

    def load_camera_prior(self, split: str) -> List[CameraPrior]:
        """
        The function for loading the camera information.

        Parameters:
        -----------
        split: str
            The split of the dataset.

        Raises:
        -------
        UnknownCameraIdError
            If an image refers to a camera missing from ``cameras.bin``.
        """
        extrinsics = read_images_binary(self.sparse_dir / "images.bin")
        intrinsics = read_cameras_binary(self.sparse_dir / "cameras.bin")

        records = sorted(extrinsics.values(), key=lambda image: image.name)
        cameras = []
        for idx in self.split_indices(len(records), split):
            colmapextr = records[idx]
            colmapintr = intrinsics.get(colmapextr.camera_id)
            if colmapintr is None:
                raise UnknownCameraIdError(colmapextr.camera_id)

            height = colmapintr.height * self.scale
            width = colmapintr.width * self.scale
            camera = CameraPrior(
                idx=len(cameras),
                R=unitquat_to_rotmat(colmapextr.qvec),
                T=np.array(colmapextr.tvec),
                image_width=int(width),
                image_height=int(height),
                rgb_file_name=colmapextr.name,
                image_id=colmapextr.id,
                fx=colmapintr.focal_length_x * self.scale,
                fy=colmapintr.focal_length_y * self.scale,
                cx=width / 2,
                cy=height / 2,
                device=self.device,
            )
            cameras.append(camera)
        return cameras

    def load_pointcloud_prior(self) -> Optional[PointsPrior]:
        """
        The function for loading the Pointcloud for initialization of gaussian model.

        ``points3D.bin`` is converted to ``points3D.ply`` on first use.

        Returns:
        --------
        point_cloud : PointsPrior | None
            The point cloud with colors in [0, 1], or None when the scene
            has no sparse points.
        """
        points3d_ply_path = self.sparse_dir / "points3D.ply"
        points3d_bin_path = self.sparse_dir / "points3D.bin"
        if not points3d_ply_path.exists():
            if not points3d_bin_path.exists():
                Logger.print(f"[yellow]No sparse points found in {self.sparse_dir}[/yellow]")
                return None
            Logger.log("convert binary to ply for the first time...")
            positions, colors = read_3D_points_binary(points3d_bin_path)
            normals = np.zeros_like(positions)
            PointsPrior(positions=positions, colors=colors, normals=normals).save_ply(points3d_ply_path)

        point_cloud = PointsPrior().read_ply(points3d_ply_path)
        point_cloud.colors = point_cloud.colors / 255.
        return point_cloud

    def load_observed_data(self, split: str) -> List[Dict[str, Any]]:
        """
        The function for loading the observed_data.

        Each camera is matched to its file by the name stored in its image
        record; other observed data, e.g. ``depth.npy`` for ``depth.png``,
        is matched by file stem.

        Parameters:
        -----------
        split: str
            The split of the dataset.

        Returns:
        --------
        observed_data: List[Dict[str, Any]]
            The observed_data for the dataset.

        Raises:
        -------
        UnknownImageFileNameError
            If no file matches a camera.
        """
        cameras = self.camera_list
        observed_data = [{} for _ in cameras]

        for k, v in self.observed_data_dirs_dict.items():
            observed_data_path = self.data_root / v
            if not observed_data_path.exists():
                Logger.print(f"observed_data path {observed_data_path} does not exist.")
            files = open_files(observed_data_path / "**" / "*")
            by_name = {path.relative_to(observed_data_path).as_posix(): file for path, file in files.items()}
            by_stem = {str(Path(name).with_suffix("")): file for name, file in by_name.items()}

            cached_progress = ProgressLogger(description='Loading cached observed_data', suffix='iters/s')
            cached_progress.add_task(f'cache_{k}', f'Loading {split} cached {k}', len(cameras))
            try:
                with cached_progress.progress:
                    for idx, camera in enumerate(cameras):
                        name = camera.rgb_file_name
                        file = by_name.get(name)
                        if file is None:
                            file = by_stem.get(str(Path(name).with_suffix("")))
                        if file is None:
                            raise UnknownImageFileNameError(name)
                        observed_data[idx][k] = self._load_file(file)
                        cached_progress.update(f'cache_{k}', step=1, log={"file": file.path.name})
            finally:
                for file in files.values():
                    file.close()
        return observed_data

    @staticmethod
    def _load_file(file) -> Any:
        suffix = file.path.suffix.lower()
        if suffix == ".npy":
            return np.load(file.inner)
        if suffix in IMAGE_SUFFIXES:
            return decode_image(file.read())
        raise ValueError(f"File format {file.path.name} is not supported.")

    def transform_observed_data(self, observed_data, split):
        """
        The function for transforming the observed_data.

        Images are resized by `scale`, blended onto the background when they
        carry alpha, and converted to ``C x H x W`` float tensors in [0, 1].

        Parameters:
        -----------
        observed_data: List[Dict[str, Any]]
            The observed_data for the dataset.

        Returns:
        --------
        observed_data: List[Dict[str, Any]]
            The transformed observed_data.
        """
        cached_progress = ProgressLogger(description='transforming cached observed data', suffix='iters/s')
        cached_progress.add_task('Transforming', f'Transforming {split} cached observed data', len(observed_data))
        with cached_progress.progress:
            for i in range(len(observed_data)):
                for key, value in observed_data[i].items():
                    if isinstance(value, Image.Image):
                        w, h = value.size
                        image = value.resize((int(w * self.scale), int(h * self.scale)))
                        image = np.array(image) / 255.
                        if image.ndim == 2:
                            image = np.repeat(image[:, :, None], 3, axis=2)
                        if image.shape[2] == 4:
                            image = image[:, :, :3] * image[:, :, 3:4] + self.background_color * (1 - image[:, :, 3:4])
                        observed_data[i][key] = torch.from_numpy(np.array(image)).permute(2, 0, 1).float().clamp(0.0, 1.0)
                    else:
                        observed_data[i][key] = torch.from_numpy(np.asarray(value))
                cached_progress.update('Transforming', step=1)
        return observed_data
