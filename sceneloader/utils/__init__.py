from .registry import Registry
from .config import load_config, parse_structured, config_to_primitive, dump_config
from .pose import (
    unitquat_to_rotmat,
    focal2fov,
    fov2focal,
    view_transform,
    view_position,
)
